"""
Parsing text lines of space-separated numbers into "features" records.

Each line of an input file is one sample; each space-separated token on the line is
one component of that sample's feature vector (for LDA, the count of one term).
"""

import re

import numpy

import ldavec.dataset

# Decimal floating-point literals only: no "nan"/"inf", no digit-grouping
# underscores, no hexadecimal floats.
_decimal_literal = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class ParseError(ValueError):
    """
    Raised when a line cannot be converted into a feature vector.

    Parameters
    ----------
    message: str
        Description of the problem.
    token: str, optional
        The offending token, if any.
    line_number: int, optional
        1-based line number within the input source, if known.
    """

    def __init__(self, message, token=None, line_number=None):
        self.message = message
        self.token = token
        self.line_number = line_number
        super().__init__(str(self))

    def __str__(self):
        if self.line_number is None:
            return self.message
        return f"Line {self.line_number}: {self.message}"

    def __reduce__(self):
        # Keep the extra attributes when crossing process boundaries
        return ParseError, (self.message, self.token, self.line_number)


class VectorLineParser:
    """
    Converts single lines of text into `ldavec.dataset.Record` objects with one
    "features" vector.

    Instances are stateless and can be shared freely across threads.

    Parameters
    ----------
    separator: str, optional
        The token separator.  Only the exact separator string is accepted; repeated
        separators produce empty tokens, which are invalid.
    """

    def __init__(self, separator=" "):
        if not separator:
            raise ValueError("`separator` must be a non-empty string.")
        self.separator = separator

    def __call__(self, line):
        return ldavec.dataset.Record(features=self.parse_vector(line))

    def parse_vector(self, line):
        """
        Parse the given line into a read-only float64 vector.

        Parameters
        ----------
        line: str

        Returns
        -------
        numpy.ndarray
            One-dimensional, read-only, with one entry per token in line order.

        Raises
        ------
        ParseError
            If the line is empty or any token is not a decimal number.
        """
        tokens = line.rstrip("\r\n").split(self.separator)

        # Trailing separators are tolerated
        while tokens and tokens[-1] == "":
            tokens.pop()

        if not tokens:
            raise ParseError("Cannot parse a feature vector from an empty line.")

        values = []
        for token in tokens:
            if not _decimal_literal.fullmatch(token):
                raise ParseError(f"Invalid numeric token: {token!r}", token=token)
            values.append(float(token))

        vector = numpy.array(values, dtype=numpy.float64)
        vector.flags.writeable = False
        return vector


parse_line = VectorLineParser()
"""Module-level `VectorLineParser` using single-space separators."""


def parse_lines(lines, session=None, parser=None):
    """
    Parse every given line into a `ldavec.dataset.Record`, preserving input order.

    Fails fast: the first malformed line raises, and no records are returned.

    Parameters
    ----------
    lines: iterable of str
    session: ldavec.session.Session, optional
        If given, the lines are parsed on the session's worker pool.
    parser: VectorLineParser, optional
        Defaults to `parse_line`.

    Returns
    -------
    list of ldavec.dataset.Record
    """
    if parser is None:
        parser = parse_line

    if session is None:
        return [parser(line) for line in lines]
    return session.map(parser, lines)


def read_vectors(session, path, parser=None):
    """
    Load a "features" `ldavec.dataset.Dataset` from a text file with one vector
    per line.

    Blank lines are skipped.  An empty file gives an empty `Dataset`.

    Parameters
    ----------
    session: ldavec.session.Session
        The session used to read the file and parse its lines.
    path: str or pathlib.Path
    parser: VectorLineParser, optional
        Defaults to `parse_line`.

    Returns
    -------
    ldavec.dataset.Dataset

    Raises
    ------
    ParseError
        If any line is malformed; `line_number` is set on the error.
    """
    if parser is None:
        parser = parse_line

    numbered = [
        (line_number, line)
        for line_number, line in enumerate(session.text_file(path), 1)
        if line.strip()
    ]

    def parse_numbered(item):
        line_number, line = item
        try:
            return parser(line)
        except ParseError as e:
            raise ParseError(e.message, token=e.token, line_number=line_number) from e

    records = session.map(parse_numbered, numbered)
    return session.create_dataset(records, ldavec.dataset.FEATURES_SCHEMA)
