"""
Turning raw text documents into "features" datasets of term counts.

The tokenisation, stop word list and vocabulary are all provided by `gensim`; this
module only strings them together.
"""

import warnings

import numpy

import ldavec.dataset
import ldavec.util

gensim = ldavec.util.LazyLoader("gensim")


def doc_to_tokens(doc, stop_words=None, min_token_length=1):
    """
    Lower-case and tokenise a document, then drop its stop words.

    Parameters
    ----------
    doc: str
    stop_words: set of str, optional
        Defaults to `gensim.parsing.preprocessing.STOPWORDS`.
    min_token_length: int, optional

    Returns
    -------
    list of str
    """
    if stop_words is None:
        stop_words = gensim.parsing.preprocessing.STOPWORDS

    tokens = gensim.utils.tokenize(doc, lowercase=True)
    return [
        token
        for token in tokens
        if len(token) >= min_token_length and token not in stop_words
    ]


def vectorise(docs, min_df=1, vocab_size=2 ** 18):
    """
    Count-vectorise tokenised documents.

    Parameters
    ----------
    docs: iterable of iterable of str
    min_df: int, optional
        Drop terms that appear in fewer than this many documents.
    vocab_size: int, optional
        Keep at most this many of the most frequent terms.

    Returns
    -------
    tuple
        (`list of numpy.ndarray`, `vocabulary as list of str`); the i-th entry of
        each vector is the count of `vocabulary[i]`.
    """
    docs = [list(doc) for doc in docs]

    dictionary = gensim.corpora.Dictionary(docs)
    dictionary.filter_extremes(no_below=min_df, no_above=1.0, keep_n=vocab_size)
    vocabulary = [dictionary[index] for index in range(len(dictionary))]

    vectors = []
    for doc in docs:
        vector = numpy.zeros(len(dictionary), dtype=numpy.float64)
        for index, count in dictionary.doc2bow(doc):
            vector[index] = count
        vector.flags.writeable = False
        vectors.append(vector)

    return vectors, vocabulary


def preprocess(
    session, path, stop_words=None, min_token_length=1, min_df=1, vocab_size=2 ** 18
):
    """
    Load documents, tokenise them, create the vocabulary, and prepare the documents
    as term count vectors.

    Each non-blank line in the file is one document.

    Parameters
    ----------
    session: ldavec.session.Session
    path: str or pathlib.Path
    stop_words: set of str, optional
        Defaults to `gensim.parsing.preprocessing.STOPWORDS`.
    min_token_length: int, optional
    min_df: int, optional
        Drop terms that appear in fewer than this many documents.
    vocab_size: int, optional
        Keep at most this many of the most frequent terms.

    Returns
    -------
    tuple
        (`ldavec.dataset.Dataset`, `vocabulary as list of str`)
    """
    lines = [line for line in session.text_file(path) if line.strip()]

    docs = session.map(
        lambda line: doc_to_tokens(line, stop_words, min_token_length), lines
    )
    vectors, vocabulary = vectorise(docs, min_df=min_df, vocab_size=vocab_size)

    empty_docs = sum(1 for vector in vectors if not vector.any())
    if empty_docs > 0:
        warnings.warn(
            f"{empty_docs} document(s) have no terms left after preprocessing. "
            f"(The document(s) may have contained only stop words or rare terms.)"
        )

    records = [ldavec.dataset.Record(features=vector) for vector in vectors]
    return (
        session.create_dataset(records, ldavec.dataset.FEATURES_SCHEMA),
        vocabulary,
    )
