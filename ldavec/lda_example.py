"""
An example demonstrating LDA.

Run with::

    python -m ldavec <file> <k>

where `<file>` holds one space-separated term count vector per line, e.g.::

    1 2 6 0 2 3 1 1 0 0 3
    1 3 0 1 3 0 0 2 0 0 1

Prints the log-likelihood and log-perplexity of the data under the trained model,
followed by the top terms for each topic.
"""

import argparse
import sys

import ldavec.models
import ldavec.parser
import ldavec.session
import ldavec.text
import ldavec.training


class _ExampleArgumentParser(argparse.ArgumentParser):
    # Usage errors exit with status 1
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _workers(value):
    if value == "auto":
        return value
    try:
        workers = int(value)
    except ValueError:
        workers = 0
    if workers < 1:
        raise argparse.ArgumentTypeError(
            f"must be a positive integer or 'auto': {value!r}"
        )
    return workers


def build_arg_parser(prog="lda_example"):
    parser = _ExampleArgumentParser(
        prog=prog, description="Train an LDA topic model and show its topics."
    )
    parser.add_argument("file", help="input file, one feature vector per line")
    parser.add_argument("k", type=int, help="number of topics")
    parser.add_argument(
        "--max-iter", type=int, default=10, help="training iterations (default: 10)"
    )
    parser.add_argument(
        "--max-terms",
        type=int,
        default=3,
        help="terms to show per topic (default: 3)",
    )
    parser.add_argument(
        "--model-type",
        choices=sorted(ldavec.models.model_classes),
        default="gensim_lda",
        help="topic model implementation (default: gensim_lda)",
    )
    parser.add_argument("--seed", type=int, default=None, help="model random seed")
    parser.add_argument(
        "--workers",
        type=_workers,
        default=1,
        help="worker threads for loading data, or 'auto' (default: 1)",
    )
    parser.add_argument(
        "--text",
        action="store_true",
        help="treat the input as raw text, one document per line",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="show training progress"
    )
    return parser


def main(argv=None):
    args = build_arg_parser().parse_args(argv)

    model_options = {
        "k": args.k,
        "max_iterations": args.max_iter,
        "verbose": args.verbose,
    }
    if args.seed is not None:
        model_options["seed"] = args.seed

    with ldavec.session.Session(
        app_name="LDAExample", workers=args.workers
    ) as session:
        # Loads data
        vocabulary = None
        if args.text:
            dataset, vocabulary = ldavec.text.preprocess(session, args.file)
        else:
            dataset = ldavec.parser.read_vectors(session, args.file)

        # Trains a LDA model
        model = ldavec.training.train_model(
            dataset, model_type=args.model_type, model_options=model_options
        )

        print(model.log_likelihood(dataset))
        print(model.log_perplexity(dataset))

        # Shows the result
        topics = model.describe_topics(args.max_terms)
        print(ldavec.training.format_topics(topics, vocabulary=vocabulary))

    return 0


if __name__ == "__main__":
    sys.exit(main())
