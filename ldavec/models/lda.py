"""
Topic modelling using a `tomotopy` LDA model.
"""

import os
import pathlib
import tempfile
import time
import warnings

import numpy
from tqdm.auto import tqdm

import ldavec.util
from .base import BaseModel

tp = ldavec.util.LazyLoader("tomotopy")

default_options = {
    "k": 10,
    "max_iterations": 10,
    "seed": 11399,
    # If "auto", will attempt to detect the number of available CPU cores and use
    # half that as the number of workers.
    "workers": "auto",
    "parallel_scheme": "default",
    "update_every": 1,
    # Sampling iterations used when inferring topics for new data
    "infer_iterations": 100,
    "verbose": True,
    # --------------------------------------
    # Model options
    # Document-topic
    "alpha": 0.1,
    # Topic-word
    # If "auto", will use 1 / k
    "eta": "auto",
}


class LDAModel(BaseModel):
    """
    An ldavec model that wraps a `tomotopy` LDA model, trained with collapsed Gibbs
    sampling.

    Every "features" vector is treated as a bag of term counts: term index `i` with
    count `c` becomes `c` copies of the token `str(i)`.  Counts must therefore be
    whole numbers.

    The configurable keys for the `options` dictionary are described in the "Other
    Parameters" section.

    Parameters
    ----------
    dataset: ldavec.dataset.Dataset
        The `ldavec.dataset.Dataset` to train the model on.
    options: dict, optional
        Model-specific options.

    Other Parameters
    ----------------
    k: int
        Number of topics to infer (must be greater than 1).
    max_iterations: int
        Number of sampling iterations to run.
    seed: int
        Model random seed.
    workers: int or "auto"
        Number of worker threads to use.  If "auto", will use half the number of
        available CPU cores.
    parallel_scheme: {"partition", "copy_merge", "default", "none"}
        Tomotopy parallelism scheme.
    update_every: int
        How many iterations to run in a batch.

        If `verbose` is True, the progress bar is updated after each batch.
    infer_iterations: int
        Number of sampling iterations when inferring topics for (possibly unseen)
        data.
    verbose: bool
        Whether or not to show a progress bar and a training summary.
    alpha: float
        Document-topic hyper-parameter for the Dirichlet distribution.
    eta: float or "auto"
        Topic-word hyper-parameter for the Dirichlet distribution.
        If "auto", will use `1 / k`.
    """

    def __init__(self, dataset, options=None):
        super().__init__(dataset, options)

        self.model_type = "tp_lda"

        if options is None:
            options = {}

        # Start by filling in any missing options with the defaults.
        self.options = dict(default_options, **options)
        self._check_common_options()

        # Normalise options
        # -----------------
        # Worker count
        if self.options["workers"] == "auto":
            worker_count = int((os.cpu_count() or 1) / 2)
            # We need at least 1 worker
            self.options["workers"] = max(1, worker_count)

        # Parallel scheme
        parallel_scheme = self.options["parallel_scheme"]
        if parallel_scheme == "default":
            parallel = tp.ParallelScheme.DEFAULT
        elif parallel_scheme == "copy_merge":
            parallel = tp.ParallelScheme.COPY_MERGE
        elif parallel_scheme == "partition":
            parallel = tp.ParallelScheme.PARTITION
        elif parallel_scheme == "none":
            parallel = tp.ParallelScheme.NONE
        else:
            raise ValueError(
                "Invalid value for `parallel_scheme` (must be one of: default, "
                "copy_merge, partition, none)"
            )
        self.options["parallel"] = parallel

        if self.options["update_every"] < 1:
            raise ValueError("`update_every` must be at least 1.")

        # Eta
        if self.options["eta"] == "auto":
            eta = 1 / self.options["k"]
        else:
            eta = self.options["eta"]

        # Initialise model
        self.model = tp.LDAModel(
            tw=tp.TermWeight.ONE,
            k=self.options["k"],
            seed=self.options["seed"],
            alpha=self.options["alpha"],
            eta=eta,
        )

        # Rows with no terms cannot be added to a tomotopy model, so we keep track of
        # which row goes to which index within `self.model.docs`.
        self.row_to_model_index = {}
        index = 0

        empty_docs = 0
        for row, vector in enumerate(self.dataset.features()):
            words = to_words(vector)
            if len(words) == 0:
                empty_docs += 1
                continue

            self.model.add_doc(words)
            self.row_to_model_index[row] = index
            index += 1

        if empty_docs > 0:
            warnings.warn(
                f"{empty_docs} row(s) skipped because their feature vectors contain "
                f"no terms."
            )
        if index == 0:
            raise ValueError("Cannot train a topic model: no row contains any terms.")

    @staticmethod
    def load_from_bytes(model_bytes):
        """
        Loads a `tomotopy.LDAModel` from its binary representation.

        Parameters
        ----------
        model_bytes: bytes
            The binary representation of the `tomotopy.LDAModel`.

        Returns
        -------
        tomotopy.LDAModel
        """
        with tempfile.TemporaryDirectory() as tmpdir:
            tmp_model_file = pathlib.Path(tmpdir) / "load_model.bin"
            # model.save() expects the filename to be a string
            tmp_model_file = str(tmp_model_file)
            with open(tmp_model_file, "wb") as fp:
                fp.write(model_bytes)

            # noinspection PyTypeChecker,PyCallByClass
            tp_model = tp.LDAModel.load(tmp_model_file)

        return tp_model

    def _external_model_to_bytes(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            tmp_model_file = str(pathlib.Path(tmpdir) / "save_model.bin")
            self.model.save(tmp_model_file)
            with open(tmp_model_file, "rb") as fp:
                return fp.read()

    def train(self):
        parallel = self.options["parallel"]
        workers = self.options["workers"]
        max_iterations = self.options["max_iterations"]
        update_every = self.options["update_every"]
        verbose = self.options["verbose"]

        origin_time = time.perf_counter()

        progress_bar = None
        if verbose:
            progress_bar = tqdm(total=max_iterations, miniters=1)

        # Initialises the sampler state even if no iterations are requested
        self.model.train(0, workers=workers, parallel=parallel)

        try:
            for i in range(0, max_iterations, update_every):
                batch = min(update_every, max_iterations - i)
                self.model.train(batch, workers=workers, parallel=parallel)
                if verbose:
                    progress_bar.set_postfix(
                        {"Log-likelihood": f"{self.model.ll_per_word:.5f}"}
                    )
                    progress_bar.update(batch)
        except KeyboardInterrupt:
            print("Stopping train sequence.")

        if verbose:
            progress_bar.close()

            elapsed = time.perf_counter() - origin_time
            print(
                f"Model training complete. ({elapsed:.3f}s)\n"
                f"\n"
                f"<ldavec Options>\n"
                f"| Workers: {workers}\n"
                f"| ParallelScheme: {repr(parallel)}\n"
                f"|"
            )
            self.model.summary(topic_word_top_n=10, flush=True)

    def get_num_topics(self):
        return self.model.k

    def _infer(self, dataset):
        """
        Run tomotopy inference over the rows of the given dataset that contain at
        least one term seen during training.

        Terms the model never saw cannot be scored, so they are left out of both the
        documents and the token count.

        Returns
        -------
        tuple
            (`row indices`, `topic distributions`, `total log-likelihood`,
            `scored token count`)
        """
        known_words = set(self.model.used_vocabs)

        rows = []
        docs = []
        scored_tokens = 0
        for row, vector in enumerate(dataset.features()):
            words = [word for word in to_words(vector) if word in known_words]
            if len(words) == 0:
                continue
            rows.append(row)
            docs.append(self.model.make_doc(words))
            scored_tokens += len(words)

        if not docs:
            return rows, [], 0.0, 0

        topic_dists, ll = self.model.infer(
            docs,
            iterations=self.options["infer_iterations"],
            workers=self.options["workers"],
            parallel=self.options["parallel"],
        )
        # `ll` is one float per document
        return rows, topic_dists, float(numpy.sum(ll)), scored_tokens

    def log_likelihood(self, dataset):
        self._check_compatible(dataset)
        _, _, ll, _ = self._infer(dataset)
        return ll

    def log_perplexity(self, dataset):
        """
        Calculate the log-perplexity of the given `ldavec.dataset.Dataset`, i.e., the
        negated log-likelihood divided by the number of tokens that were scored.

        Occurrences of terms that never appeared in the training data are not
        scored, and so do not count towards the number of tokens.

        Parameters
        ----------
        dataset: ldavec.dataset.Dataset

        Returns
        -------
        float
        """
        self._check_compatible(dataset)
        _, _, ll, scored_tokens = self._infer(dataset)
        if scored_tokens <= 0:
            raise ValueError(
                "Cannot calculate log-perplexity for a dataset with no tokens known "
                "to the model."
            )
        return -ll / scored_tokens

    def topics_matrix(self):
        if self.model is None:
            raise RuntimeError("This model has no trained external model attached.")

        matrix = numpy.zeros((self.vocab_size, self.get_num_topics()))
        # Tomotopy only knows the terms that actually occurred during training;
        # its vocabulary entries are the stringified term indices
        term_indices = [int(word) for word in self.model.used_vocabs]
        for topic in range(self.get_num_topics()):
            dist = numpy.asarray(self.model.get_topic_word_dist(topic))
            matrix[term_indices, topic] = dist[: len(term_indices)]
        return matrix

    def transform(self, dataset):
        self._check_compatible(dataset)

        # Rows without terms just get the (normalised) prior
        alpha = numpy.asarray(self.model.alpha, dtype=numpy.float64)
        alpha = numpy.broadcast_to(alpha, (self.get_num_topics(),))
        prior = alpha / alpha.sum()
        distributions = [prior.copy() for _ in range(len(dataset))]

        rows, topic_dists, _, _ = self._infer(dataset)
        for row, dist in zip(rows, topic_dists):
            distributions[row] = numpy.asarray(dist, dtype=numpy.float64)
        return distributions


def to_words(vector):
    """
    Expand a term count vector into a list of tokens for `tomotopy`.

    Parameters
    ----------
    vector: numpy.ndarray
        Non-negative, whole-number term counts.

    Returns
    -------
    list of str
    """
    if not numpy.all(vector == numpy.floor(vector)):
        raise ValueError(
            "The tomotopy LDA model requires whole-number term counts; use the "
            "'gensim_lda' model for fractional counts."
        )

    words = []
    (indices,) = numpy.nonzero(vector)
    for index in indices:
        words += [str(index)] * int(vector[index])
    return words
