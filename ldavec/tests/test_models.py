import contextlib
import io
import math
import pathlib
import tempfile
import unittest
import unittest.mock
import warnings

import numpy

import ldavec.models
import ldavec.parser
import ldavec.training
from ldavec.dataset import Dataset, Record

# Term count vectors over an 11-term vocabulary
SAMPLE_LINES = [
    "1 2 6 0 2 3 1 1 0 0 3",
    "1 3 0 1 3 0 0 2 0 0 1",
    "1 4 1 0 0 4 9 0 1 2 0",
    "2 1 0 3 0 0 5 0 2 3 9",
    "3 1 1 9 3 0 2 0 0 1 3",
    "4 2 0 3 4 5 1 1 1 4 0",
    "2 1 0 3 0 0 5 0 2 2 9",
    "1 1 1 9 2 1 2 0 0 1 3",
    "4 4 0 3 4 2 1 3 0 0 0",
    "2 8 2 0 3 0 2 0 2 7 2",
    "1 1 1 9 0 2 2 0 0 3 3",
    "4 1 0 0 4 5 1 3 0 1 0",
]


def sample_dataset():
    return Dataset(ldavec.parser.parse_lines(SAMPLE_LINES))


class ModelTestMixin:
    """
    Behaviour shared by all topic model implementations
    """

    model_type = None
    k = 3

    @classmethod
    def setUpClass(cls):
        cls.dataset = sample_dataset()
        cls.model = ldavec.training.train_model(
            cls.dataset,
            model_type=cls.model_type,
            model_options={"k": cls.k, "max_iterations": 10, "verbose": False},
        )

    def test_model_type(self):
        self.assertEqual(self.model.model_type, self.model_type)
        self.assertEqual(self.model.get_num_topics(), self.k)
        self.assertEqual(self.model.vocab_size, 11)

    def test_log_likelihood(self):
        ll = self.model.log_likelihood(self.dataset)
        self.assertTrue(math.isfinite(ll))
        self.assertLess(ll, 0)

    def test_log_perplexity(self):
        perplexity = self.model.log_perplexity(self.dataset)
        self.assertTrue(math.isfinite(perplexity))
        self.assertGreater(perplexity, 0)

    def test_log_perplexity_no_tokens(self):
        empty = Dataset([Record(features=numpy.zeros(11))])
        self.assertRaises(ValueError, self.model.log_perplexity, empty)

    def test_describe_topics(self):
        topics = self.model.describe_topics(3)
        self.assertEqual(len(topics), self.k)
        self.assertEqual([t.topic for t in topics], list(range(self.k)))

        for topic in topics:
            self.assertEqual(len(topic.term_indices), 3)
            self.assertEqual(len(topic.term_weights), 3)
            self.assertTrue(all(0 <= index < 11 for index in topic.term_indices))
            self.assertEqual(
                topic.term_weights, sorted(topic.term_weights, reverse=True)
            )

        # Asking for more terms than exist gives the full vocabulary
        topics = self.model.describe_topics(50)
        self.assertEqual(len(topics[0].term_indices), 11)

        self.assertRaises(ValueError, self.model.describe_topics, 0)

    def test_topics_matrix(self):
        matrix = self.model.topics_matrix()
        self.assertEqual(matrix.shape, (11, self.k))
        for total in matrix.sum(axis=0):
            self.assertAlmostEqual(total, 1.0, places=3)

    def test_transform(self):
        distributions = self.model.transform(self.dataset)
        self.assertEqual(len(distributions), len(self.dataset))
        for dist in distributions:
            self.assertEqual(len(dist), self.k)
            self.assertAlmostEqual(float(numpy.sum(dist)), 1.0, places=3)

        self.assertEqual(self.model.transform(Dataset()), [])

    def test_incompatible_dataset(self):
        """
        Scoring data with a different vector length is an error
        """
        other = Dataset(ldavec.parser.parse_lines(["1 2 3", "0 1 1"]))
        self.assertRaises(ValueError, self.model.log_likelihood, other)
        self.assertRaises(ValueError, self.model.transform, other)

    def test_save_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            filename = pathlib.Path(tmpdir) / "test.model"
            self.model.save(filename)
            loaded = ldavec.training.load_model(filename)

        # Saving does not detach anything from the original model
        self.assertIs(self.model.dataset, self.dataset)
        self.assertIsNotNone(self.model.model)

        self.assertIsInstance(loaded, type(self.model))
        self.assertIsNone(loaded.dataset)
        self.assertEqual(loaded.get_num_topics(), self.k)
        numpy.testing.assert_allclose(
            loaded.topics_matrix(), self.model.topics_matrix(), atol=1e-6
        )
        self.assertTrue(math.isfinite(loaded.log_likelihood(self.dataset)))


class TestOnlineLDAModel(ModelTestMixin, unittest.TestCase):
    """
    Test the gensim-backed online LDA model
    """

    model_type = "gensim_lda"

    def test_fractional_counts(self):
        dataset = Dataset(
            ldavec.parser.parse_lines(["0.5 1.5 0", "2 0 0.25", "0 1 1"])
        )
        model = ldavec.training.train_model(
            dataset, model_options={"k": 2, "max_iterations": 2, "verbose": False}
        )
        self.assertTrue(math.isfinite(model.log_likelihood(dataset)))

    def test_reproducible(self):
        """
        The same seed gives the same topics
        """
        options = {"k": 2, "max_iterations": 3, "seed": 42, "verbose": False}
        first = ldavec.training.train_model(self.dataset, model_options=options)
        second = ldavec.training.train_model(self.dataset, model_options=options)
        numpy.testing.assert_allclose(first.topics_matrix(), second.topics_matrix())

    def test_scoring_repeatable(self):
        """
        Scoring the same data twice gives exactly the same answer
        """
        self.assertEqual(
            self.model.log_likelihood(self.dataset),
            self.model.log_likelihood(self.dataset),
        )
        numpy.testing.assert_array_equal(
            self.model.transform(self.dataset), self.model.transform(self.dataset)
        )

    def test_log_perplexity_matches_log_likelihood(self):
        """
        Log-perplexity is exactly the negated log-likelihood per token
        """
        ll = self.model.log_likelihood(self.dataset)
        self.assertEqual(
            self.model.log_perplexity(self.dataset),
            -ll / self.dataset.num_tokens(),
        )

    def test_verbose_does_not_change_training(self):
        """
        The progress bar's per-pass scoring leaves the trained topics untouched
        """
        options = {"k": 3, "max_iterations": 4, "seed": 1}
        with contextlib.redirect_stdout(io.StringIO()), contextlib.redirect_stderr(
            io.StringIO()
        ):
            verbose = ldavec.training.train_model(
                self.dataset, model_options=dict(options, verbose=True)
            )
        quiet = ldavec.training.train_model(
            self.dataset, model_options=dict(options, verbose=False)
        )
        numpy.testing.assert_array_equal(
            verbose.topics_matrix(), quiet.topics_matrix()
        )

    def test_invalid_options(self):
        self.assertRaises(
            ValueError,
            ldavec.models.OnlineLDAModel,
            self.dataset,
            {"doc_concentration": "sometimes"},
        )
        self.assertRaises(
            ValueError,
            ldavec.models.OnlineLDAModel,
            self.dataset,
            {"k": 3, "doc_concentration": [0.1, 0.2]},
        )
        self.assertRaises(
            ValueError,
            ldavec.models.OnlineLDAModel,
            self.dataset,
            {"learning_decay": 0.2},
        )


class TestLDAModel(ModelTestMixin, unittest.TestCase):
    """
    Test the tomotopy-backed LDA model
    """

    model_type = "tp_lda"

    def test_fractional_counts(self):
        dataset = Dataset(ldavec.parser.parse_lines(["0.5 1.5 0", "2 0 1"]))
        self.assertRaises(ValueError, ldavec.models.LDAModel, dataset)

    def test_empty_rows_skipped(self):
        dataset = Dataset(ldavec.parser.parse_lines(SAMPLE_LINES + ["0 " * 11]))
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            model = ldavec.models.LDAModel(dataset, {"k": 2, "verbose": False})
        self.assertTrue(any("skipped" in str(w.message) for w in caught))
        self.assertEqual(len(model.row_to_model_index), len(SAMPLE_LINES))

        model.train()
        distributions = model.transform(dataset)
        self.assertEqual(len(distributions), len(dataset))

    def test_log_perplexity_scored_tokens(self):
        """
        Log-perplexity divides by the number of tokens the model actually scored
        """
        with unittest.mock.patch.object(
            self.model, "_infer", return_value=([0, 1], [], -50.0, 20)
        ):
            self.assertEqual(self.model.log_perplexity(self.dataset), 2.5)

    def test_unseen_terms_not_scored(self):
        # The last term never occurs in the training data
        lines = [line.rsplit(" ", 1)[0] + " 0" for line in SAMPLE_LINES]
        model = ldavec.training.train_model(
            Dataset(ldavec.parser.parse_lines(lines)),
            model_type=self.model_type,
            model_options={"k": 2, "max_iterations": 5, "verbose": False},
        )

        unseen_tokens = sum(vector[10] for vector in self.dataset.features())
        self.assertGreater(unseen_tokens, 0)
        _, _, _, scored_tokens = model._infer(self.dataset)
        self.assertEqual(scored_tokens, self.dataset.num_tokens() - unseen_tokens)

        perplexity = model.log_perplexity(self.dataset)
        self.assertTrue(math.isfinite(perplexity))
        self.assertGreater(perplexity, 0)

        only_unseen = Dataset(ldavec.parser.parse_lines(["0 " * 10 + "4"]))
        self.assertRaises(ValueError, model.log_perplexity, only_unseen)

    def test_invalid_options(self):
        for options in [
            {"parallel_scheme": "everything"},
            {"update_every": 0},
        ]:
            self.assertRaises(
                ValueError, ldavec.models.LDAModel, self.dataset, options
            )


class TestModelInput(unittest.TestCase):
    """
    Datasets and options that no model should accept
    """

    def test_mixed_lengths(self):
        dataset = Dataset(ldavec.parser.parse_lines(["1 2 3", "4 5"]))
        for model_class in ldavec.models.model_classes.values():
            self.assertRaises(ValueError, model_class, dataset)

    def test_empty_dataset(self):
        for model_class in ldavec.models.model_classes.values():
            self.assertRaises(ValueError, model_class, Dataset())

    def test_negative_counts(self):
        dataset = Dataset(ldavec.parser.parse_lines(["1 -2 3", "4 5 6"]))
        for model_class in ldavec.models.model_classes.values():
            self.assertRaises(ValueError, model_class, dataset)

    def test_invalid_common_options(self):
        dataset = sample_dataset()
        for model_class in ldavec.models.model_classes.values():
            self.assertRaises(ValueError, model_class, dataset, {"k": 1})
            self.assertRaises(ValueError, model_class, dataset, {"k": 2.5})
            self.assertRaises(
                ValueError, model_class, dataset, {"max_iterations": -1}
            )

    def test_unknown_model_type(self):
        self.assertRaises(
            ValueError,
            ldavec.training.train_model,
            sample_dataset(),
            model_type="sklearn_lda",
        )

    def test_not_a_dataset(self):
        self.assertRaises(
            ValueError, ldavec.training.train_model, [[1.0, 2.0], [3.0, 4.0]]
        )


class TestFormatTopics(unittest.TestCase):
    """
    Test the describe-topics table
    """

    topics = [
        ldavec.models.TopicDescription(0, [2, 0], [0.5, 0.25]),
        ldavec.models.TopicDescription(1, [1, 2], [0.75, 0.125]),
    ]

    def test_format_topics(self):
        table = ldavec.training.format_topics(self.topics)
        for header in ["topic", "termIndices", "termWeights"]:
            self.assertIn(header, table)
        self.assertNotIn("terms ", table)
        self.assertIn("[2, 0]", table)
        self.assertIn("[0.75, 0.125]", table)

    def test_format_topics_vocabulary(self):
        table = ldavec.training.format_topics(
            self.topics, vocabulary=["apple", "banana", "cherry"]
        )
        self.assertIn("['cherry', 'apple']", table)
        self.assertIn("['banana', 'cherry']", table)

    def test_format_topics_precision(self):
        table = ldavec.training.format_topics(self.topics, precision=1)
        self.assertIn("[0.8, 0.1]", table)
