"""
Train LDA topic models on datasets of term count vectors.
"""

import ldavec.dataset
import ldavec.parser
import ldavec.session
import ldavec.text
import ldavec.training

from ldavec.__version__ import __version__

Session = ldavec.session.Session

Dataset = ldavec.dataset.Dataset
Record = ldavec.dataset.Record
load_dataset = ldavec.dataset.load_dataset

ParseError = ldavec.parser.ParseError
parse_line = ldavec.parser.parse_line
parse_lines = ldavec.parser.parse_lines
read_vectors = ldavec.parser.read_vectors

preprocess = ldavec.text.preprocess

train_model = ldavec.training.train_model
load_model = ldavec.training.load_model
format_topics = ldavec.training.format_topics
