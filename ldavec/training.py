"""
Functions for training, reloading and reporting on `ldavec.models` topic models.
"""

import bz2
import pickle

import dashtable

import ldavec.dataset
import ldavec.models


def train_model(dataset, model_type="gensim_lda", model_options=None):
    """
    Top-level helper for training topic models using the various algorithms available.

    Parameters
    ----------
    dataset: ldavec.dataset.Dataset
        The `ldavec.dataset.Dataset` to perform the topic modelling over; must have a
        "features" column of equal-length term count vectors.
    model_type: {"gensim_lda", "tp_lda"}
        Type of model to train; corresponds to the model type listed in the relevant
        `ldavec.models` class.
    model_options: dict, optional
        Dictionary of options that will be passed to the relevant `ldavec.models`
        model constructor.

    Returns
    -------
    ldavec.models.base.BaseModel
        The trained model.
    """
    if not isinstance(dataset, ldavec.dataset.Dataset):
        raise ValueError("ldavec models must be instantiated with Dataset instances.")

    try:
        model_class = ldavec.models.model_classes[model_type]
    except KeyError:
        raise ValueError(f"Unknown model type: '{model_type}'") from None

    model = model_class(dataset, model_options)
    model.train()
    return model


def load_model(filename):
    """
    Loads a trained `ldavec.models` model from the given file.

    The loaded model has no training `ldavec.dataset.Dataset` attached, but can still
    score, describe and transform datasets.

    Parameters
    ----------
    filename: str or pathlib.Path
        The file to load the model from.

    Returns
    -------
    ldavec.models.base.BaseModel
    """
    with bz2.open(filename, "rb") as fp:
        save_object = pickle.load(fp)

    if not isinstance(save_object, dict) or "model_type" not in save_object:
        raise ValueError(f"File does not contain a saved ldavec model: '{filename}'")

    # Rehydrate the external model
    model_type = save_object["model_type"]
    try:
        model_class = ldavec.models.model_classes[model_type]
    except KeyError:
        raise ValueError(f"Unknown model type: '{model_type}'") from None

    save_model = save_object["save_model"]
    save_model.model = model_class.load_from_bytes(
        save_object["external_model_bytes"]
    )
    return save_model


def format_topics(topics, vocabulary=None, precision=None):
    """
    Render the output of `ldavec.models.base.BaseModel.describe_topics()` as a text
    grid table.

    Parameters
    ----------
    topics: iterable of ldavec.models.base.TopicDescription
    vocabulary: list of str, optional
        If given, a "terms" column is added with the words for each term index.
    precision: int, optional
        If given, term weights are rounded to this many decimal places.

    Returns
    -------
    str
    """
    header = ["topic", "termIndices", "termWeights"]
    if vocabulary is not None:
        header.append("terms")

    table = [header]
    for description in topics:
        weights = description.term_weights
        if precision is not None:
            weights = [round(weight, precision) for weight in weights]

        row = [
            str(description.topic),
            str(list(description.term_indices)),
            str(list(weights)),
        ]
        if vocabulary is not None:
            row.append(str([vocabulary[index] for index in description.term_indices]))
        table.append(row)

    return dashtable.data2rst(table, use_headers=True)
