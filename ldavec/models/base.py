"""
Base class for all `ldavec` models.
Should never be instantiated directly.
"""

import bz2
import collections
import copy
import pathlib
import pickle

import numpy

TopicDescription = collections.namedtuple(
    "TopicDescription", ["topic", "term_indices", "term_weights"]
)
TopicDescription.__doc__ = """
The top terms for a single topic, as returned by `BaseModel.describe_topics()`.
`topic` is 0-indexed; `term_indices` index into the "features" vectors.
"""


class BaseModel:
    """
    The base class for all `ldavec` models.

    Implemented child classes have the freedom to define their own default values for
    each option, but should all accept `k`, `max_iterations`, `seed` and `verbose`.

    Parameters
    ----------
    dataset: ldavec.dataset.Dataset
        The `ldavec.dataset.Dataset` to train the model on.  Must have a "features"
        column of equal-length, non-negative term count vectors.
    options: dict, optional
        Model-specific options.
    """

    def __init__(self, dataset, options=None):
        self.vocab_size = check_features(dataset)

        # Save a reference to the Dataset we are modelling over
        self.dataset = dataset

        # Unique model type identifier for saving/loading results
        self.model_type = "<set_me>"

        # Model-specific options
        if options is None:
            options = {}
        self.options = options

        # The actual model, as created by the external topic modelling library
        self.model = None

    def _check_common_options(self):
        """
        Validate the options shared by all models; call after merging in defaults.
        """
        k = self.options["k"]
        if not isinstance(k, int) or k <= 1:
            raise ValueError(f"`k` must be an integer greater than 1 (got {k!r})")

        max_iterations = self.options["max_iterations"]
        if not isinstance(max_iterations, int) or max_iterations < 0:
            raise ValueError(
                f"`max_iterations` must be a non-negative integer "
                f"(got {max_iterations!r})"
            )

    def train(self):
        """
        Trains the topic model with its configured options on its configured
        `ldavec.dataset.Dataset`.
        """
        raise NotImplementedError()

    def get_num_topics(self):
        """
        Get the number of topics in the model.

        Returns
        -------
        int
        """
        raise NotImplementedError()

    def log_likelihood(self, dataset):
        """
        Calculate a lower bound on the log-likelihood of the entire given
        `ldavec.dataset.Dataset`.

        Parameters
        ----------
        dataset: ldavec.dataset.Dataset
            Must have vectors of the same length as the training data.

        Returns
        -------
        float
        """
        raise NotImplementedError()

    def log_perplexity(self, dataset):
        """
        Calculate an upper bound on the log-perplexity of the given
        `ldavec.dataset.Dataset`, i.e., the negated log-likelihood bound divided by
        the total number of tokens in the dataset.

        Parameters
        ----------
        dataset: ldavec.dataset.Dataset

        Returns
        -------
        float
        """
        num_tokens = dataset.num_tokens()
        if num_tokens <= 0:
            raise ValueError(
                "Cannot calculate log-perplexity for a dataset with no tokens."
            )
        return -self.log_likelihood(dataset) / num_tokens

    def describe_topics(self, max_terms_per_topic=10):
        """
        Get the most heavily weighted terms for every topic in the model.

        Parameters
        ----------
        max_terms_per_topic: int, optional
            Maximum number of terms to return per topic.

        Returns
        -------
        list of TopicDescription
            One entry per topic in topic order, with terms sorted by weight
            (descending).
        """
        if max_terms_per_topic < 1:
            raise ValueError("`max_terms_per_topic` must be at least 1.")

        matrix = self.topics_matrix()
        max_terms = min(max_terms_per_topic, matrix.shape[0])

        topics = []
        for topic in range(matrix.shape[1]):
            weights = matrix[:, topic]
            # Stable sort keeps lower term indices first on ties
            order = numpy.argsort(-weights, kind="stable")[:max_terms]
            topics.append(
                TopicDescription(
                    topic=topic,
                    term_indices=[int(index) for index in order],
                    term_weights=[float(weights[index]) for index in order],
                )
            )
        return topics

    def topics_matrix(self):
        """
        Get the inferred topics as a matrix of term weights.

        Returns
        -------
        numpy.ndarray
            Shape `(vocab_size, k)`; each column is a topic's distribution over terms.
        """
        raise NotImplementedError()

    def transform(self, dataset):
        """
        Infer the topic distribution for every row of the given
        `ldavec.dataset.Dataset`.

        Parameters
        ----------
        dataset: ldavec.dataset.Dataset

        Returns
        -------
        list of numpy.ndarray
            One length-`k` vector per row, in row order.
        """
        raise NotImplementedError()

    def _check_compatible(self, dataset):
        """
        Make sure the given dataset can be scored by this model.
        """
        if self.model is None:
            raise RuntimeError("This model has no trained external model attached.")
        vocab_size = check_features(dataset, allow_empty=True)
        if vocab_size is not None and vocab_size != self.vocab_size:
            raise ValueError(
                f"Dataset vectors have length {vocab_size}, but the model was "
                f"trained on vectors of length {self.vocab_size}."
            )

    def _external_model_to_bytes(self):
        """
        Serialise the external library's model object.
        """
        raise NotImplementedError()

    @staticmethod
    def load_from_bytes(model_bytes):
        """
        Rehydrate the external library's model object from its binary
        representation.
        """
        raise NotImplementedError()

    def save(self, filename):
        """
        Saves the model, including the external library's trained model, to the
        given file.
        Essentially uses a bz2-compressed Pickle format.

        The training `ldavec.dataset.Dataset` is not saved along with the model.

        Parameters
        ----------
        filename: str or pathlib.Path
            File to save the model to.
        """
        filename = pathlib.Path(filename)

        # Separate the external library's model out (it might not be pickle-able)
        external_model = self.model
        dataset = self.dataset
        external_model_bytes = self._external_model_to_bytes()

        self.model = None
        self.dataset = None
        try:
            save_model = copy.deepcopy(self)
        finally:
            self.model = external_model
            self.dataset = dataset

        save_object = {
            "save_model": save_model,
            "model_type": save_model.model_type,
            "external_model_bytes": external_model_bytes,
        }

        with bz2.open(filename, "wb") as fp:
            pickle.dump(save_object, fp)


def check_features(dataset, allow_empty=False):
    """
    Check that a `ldavec.dataset.Dataset` is usable as topic model input.

    Parameters
    ----------
    dataset: ldavec.dataset.Dataset
    allow_empty: bool, optional
        If False, an empty dataset raises a `ValueError`.

    Returns
    -------
    int or None
        The common length of the "features" vectors (`None` for an allowed empty
        dataset).
    """
    if "features" not in dataset.columns:
        raise ValueError(
            f"Dataset has no 'features' column (columns: {dataset.columns})"
        )

    if len(dataset) == 0:
        if allow_empty:
            return None
        raise ValueError("Cannot train a topic model on an empty dataset.")

    sizes = dataset.vector_sizes()
    if len(sizes) > 1:
        raise ValueError(
            f"All feature vectors must have the same length (found lengths: "
            f"{sorted(sizes)})"
        )

    for vector in dataset.features():
        if numpy.any(vector < 0) or not numpy.all(numpy.isfinite(vector)):
            raise ValueError("Term counts must be finite and non-negative.")

    return sizes.pop()
