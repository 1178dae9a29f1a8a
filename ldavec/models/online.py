"""
Topic modelling using a `gensim` online variational Bayes LDA model.
"""

import contextlib
import pickle
import time

import numpy
from tqdm.auto import tqdm

import ldavec.util
from .base import BaseModel

gensim = ldavec.util.LazyLoader("gensim")

default_options = {
    "k": 10,
    "max_iterations": 10,
    "seed": 11399,
    "verbose": True,
    # --------------------------------------
    # Model options
    # Document-topic prior.
    # If "auto", an asymmetric prior is learnt from the data (starting at 1 / k);
    # "symmetric" fixes it at 1 / k.
    "doc_concentration": "auto",
    # Topic-word prior.
    # If "auto", will use 1 / k
    "topic_concentration": "auto",
    # --------------------------------------
    # Online learning rate: rho_t = (learning_offset + t) ^ -learning_decay
    # Larger offsets downweight early iterations.
    "learning_offset": 1024.0,
    # Must be in (0.5, 1] to guarantee convergence
    "learning_decay": 0.51,
    # Documents per mini-batch
    "chunksize": 2000,
    # Maximum E-step iterations per document
    "inference_iterations": 50,
}


class OnlineLDAModel(BaseModel):
    """
    An ldavec model that wraps a `gensim.models.LdaModel`, trained with online
    variational Bayes.

    Term counts in the "features" vectors may be fractional.

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
        Number of passes over the dataset.
    seed: int
        Model random seed.
    verbose: bool
        Whether or not to show a progress bar and a training summary.
    doc_concentration: float, iterable of float, "auto" or "symmetric"
        Document-topic hyper-parameter for the Dirichlet distribution.
    topic_concentration: float or "auto"
        Topic-word hyper-parameter for the Dirichlet distribution.
        If "auto", will use `1 / k`.
    learning_offset: float
        Learning parameter that downweights early iterations.
    learning_decay: float
        Exponential decay rate of the learning rate; should be in (0.5, 1].
    chunksize: int
        Number of documents per mini-batch.
    inference_iterations: int
        Maximum number of per-document inference iterations.
    """

    def __init__(self, dataset, options=None):
        super().__init__(dataset, options)

        self.model_type = "gensim_lda"

        if options is None:
            options = {}

        # Start by filling in any missing options with the defaults.
        self.options = dict(default_options, **options)
        self._check_common_options()

        # Normalise options
        # -----------------
        k = self.options["k"]

        alpha = self.options["doc_concentration"]
        if isinstance(alpha, str) and alpha not in ("auto", "symmetric"):
            raise ValueError(
                "Invalid value for `doc_concentration` (must be a number, a list of "
                "numbers, 'auto' or 'symmetric')"
            )
        if not isinstance(alpha, (str, int, float)):
            alpha = numpy.asarray(alpha, dtype=numpy.float64)
            if alpha.shape != (k,):
                raise ValueError(
                    "Length mismatch between `doc_concentration` and number of "
                    "topics."
                )

        eta = self.options["topic_concentration"]
        if isinstance(eta, str) and eta == "auto":
            eta = 1 / k

        decay = self.options["learning_decay"]
        if not 0.5 < decay <= 1:
            raise ValueError("`learning_decay` must be in the interval (0.5, 1]")

        # Term IDs are simply the positions within the "features" vectors
        self.id2word = {index: str(index) for index in range(self.vocab_size)}

        # Initialise model; training happens one pass at a time in `train()`
        self.model = gensim.models.LdaModel(
            corpus=None,
            num_topics=k,
            id2word=self.id2word,
            chunksize=self.options["chunksize"],
            passes=1,
            alpha=alpha,
            eta=eta,
            decay=decay,
            offset=self.options["learning_offset"],
            eval_every=None,
            iterations=self.options["inference_iterations"],
            random_state=self.options["seed"],
            dtype=numpy.float64,
        )

    @staticmethod
    def load_from_bytes(model_bytes):
        """
        Loads a `gensim.models.LdaModel` from its binary representation.

        Parameters
        ----------
        model_bytes: bytes

        Returns
        -------
        gensim.models.LdaModel
        """
        return pickle.loads(model_bytes)

    def _external_model_to_bytes(self):
        return pickle.dumps(self.model)

    def train(self):
        max_iterations = self.options["max_iterations"]
        verbose = self.options["verbose"]

        origin_time = time.perf_counter()

        progress_bar = None
        if verbose:
            progress_bar = tqdm(total=max_iterations, miniters=1)

        corpus = to_bow(self.dataset)
        try:
            for _ in range(max_iterations):
                self.model.update(corpus)
                if verbose:
                    current_perplexity = self.log_perplexity(self.dataset)
                    progress_bar.set_postfix(
                        {"Log-perplexity": f"{current_perplexity:.5f}"}
                    )
                    progress_bar.update(1)
        except KeyboardInterrupt:
            print("Stopping train sequence.")

        if verbose:
            progress_bar.close()

            elapsed = time.perf_counter() - origin_time
            print(
                f"Model training complete. ({elapsed:.3f}s)\n"
                f"\n"
                f"<Online LDA>\n"
                f"| Documents: {len(self.dataset)}\n"
                f"| Vocabulary size: {self.vocab_size}\n"
                f"| Topics: {self.get_num_topics()}\n"
                f"| Iterations: {max_iterations}\n"
                f"|"
            )

    def get_num_topics(self):
        return self.model.num_topics

    @contextlib.contextmanager
    def _seeded_random_state(self):
        """
        Temporarily give the external model a fresh random generator seeded with
        `options["seed"]`.

        `gensim` draws the starting point for every inference call from the model's
        shared generator, so scoring would otherwise give a different answer on
        every call and disturb any training that follows.
        """
        random_state = self.model.random_state
        self.model.random_state = gensim.utils.get_random_state(self.options["seed"])
        try:
            yield
        finally:
            self.model.random_state = random_state

    def log_likelihood(self, dataset):
        self._check_compatible(dataset)
        if len(dataset) == 0:
            return 0.0
        with self._seeded_random_state():
            return float(self.model.bound(to_bow(dataset)))

    def topics_matrix(self):
        if self.model is None:
            raise RuntimeError("This model has no trained external model attached.")
        # gensim gives (k, vocab_size) with normalised rows
        return numpy.asarray(self.model.get_topics(), dtype=numpy.float64).T

    def transform(self, dataset):
        self._check_compatible(dataset)
        if len(dataset) == 0:
            return []

        with self._seeded_random_state():
            gamma, _ = self.model.inference(to_bow(dataset))
        gamma = numpy.asarray(gamma, dtype=numpy.float64)
        distributions = gamma / gamma.sum(axis=1, keepdims=True)
        return list(distributions)


def to_bow(dataset):
    """
    Convert the "features" vectors of a `ldavec.dataset.Dataset` into a `gensim`
    bag-of-words corpus.

    Parameters
    ----------
    dataset: ldavec.dataset.Dataset

    Returns
    -------
    list of list of tuple
        One list of (`term index`, `count`) tuples per row, omitting zero counts.
    """
    corpus = []
    for vector in dataset.features():
        (indices,) = numpy.nonzero(vector)
        corpus.append([(int(index), float(vector[index])) for index in indices])
    return corpus
