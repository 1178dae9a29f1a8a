"""
Classes for working with topic modelling algorithms.
End-users will usually go through `ldavec.training.train_model()` instead of using
these classes directly.
"""

from .base import BaseModel, TopicDescription
from .lda import LDAModel
from .online import OnlineLDAModel

model_classes = {
    "gensim_lda": OnlineLDAModel,
    "tp_lda": LDAModel,
}
"""Model classes, keyed by their `model_type` identifiers."""
