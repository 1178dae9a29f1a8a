"""
`ldavec.dataset.Dataset` instances are ordered, schema-checked collections of
`ldavec.dataset.Record` rows; they are what the topic models train on.
"""

import bz2
import collections
import pathlib
import pickle

import numpy

Record = collections.namedtuple("Record", ["features"])
Record.__doc__ = """A single row with one "features" vector."""

Field = collections.namedtuple("Field", ["name", "data_type", "nullable"])
Field.__doc__ = """A named, typed column declaration within a `Schema`."""

VECTOR_TYPE = "vector"
"""Data type name for one-dimensional numeric vectors."""


class Schema:
    """
    An ordered list of `Field` declarations shared by every `Record` in a `Dataset`.

    Parameters
    ----------
    fields: iterable of Field
    """

    def __init__(self, fields):
        self.fields = list(fields)

        names = [field.name for field in self.fields]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate field names in schema: {names}")

        for field in self.fields:
            if field.data_type != VECTOR_TYPE:
                raise ValueError(
                    f"Unsupported data type for field '{field.name}': "
                    f"'{field.data_type}' (must be '{VECTOR_TYPE}')"
                )

    @property
    def names(self):
        return [field.name for field in self.fields]

    def validate(self, record):
        """
        Check that the given row conforms to this schema.

        Parameters
        ----------
        record: tuple
            A `Record` or any other tuple with one value per field.

        Raises
        ------
        ValueError
            If the row has the wrong arity or field names, a non-nullable field is
            `None`, or a vector field is not a one-dimensional numeric array.
        """
        if len(record) != len(self.fields):
            raise ValueError(
                f"Record has {len(record)} field(s); schema expects "
                f"{len(self.fields)}."
            )

        record_names = getattr(record, "_fields", None)
        if record_names is not None and list(record_names) != self.names:
            raise ValueError(
                f"Record fields {list(record_names)} do not match schema fields "
                f"{self.names}."
            )

        for field, value in zip(self.fields, record):
            if value is None:
                if not field.nullable:
                    raise ValueError(f"Field '{field.name}' is not nullable.")
                continue

            if not isinstance(value, numpy.ndarray) or value.ndim != 1:
                raise ValueError(
                    f"Field '{field.name}' must hold a one-dimensional vector."
                )
            if not numpy.issubdtype(value.dtype, numpy.number):
                raise ValueError(f"Field '{field.name}' must hold numeric values.")

    def __eq__(self, other):
        return isinstance(other, Schema) and self.fields == other.fields

    def __repr__(self):
        return f"Schema({self.fields!r})"


FEATURES_SCHEMA = Schema([Field("features", VECTOR_TYPE, False)])
"""The one-column schema used for topic model input."""


class Dataset:
    """
    An ordered collection of `Record` rows that all conform to one `Schema`.

    Rows keep their insertion order.  Vector lengths are not checked against each
    other here; consumers that need a uniform length (e.g., the topic models)
    check it themselves.

    Parameters
    ----------
    records: iterable of Record
    schema: Schema, optional
        Defaults to `FEATURES_SCHEMA`.
    """

    def __init__(self, records=(), schema=None):
        if schema is None:
            schema = FEATURES_SCHEMA
        self.schema = schema

        self._records = list(records)
        for record in self._records:
            schema.validate(record)

    def __len__(self):
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def __getitem__(self, index):
        return self._records[index]

    def __eq__(self, other):
        if not isinstance(other, Dataset):
            return False
        if self.schema != other.schema or len(self) != len(other):
            return False
        for ours, theirs in zip(self, other):
            for a, b in zip(ours, theirs):
                if a is None or b is None:
                    if a is not b:
                        return False
                elif not numpy.array_equal(a, b):
                    return False
        return True

    def __repr__(self):
        return f"<Dataset: {len(self)} record(s), columns {self.columns}>"

    @property
    def columns(self):
        return self.schema.names

    def count(self):
        return len(self._records)

    def collect(self):
        """
        Returns
        -------
        list of Record
            A copy of the rows in this `Dataset`.
        """
        return list(self._records)

    def column(self, name):
        """
        Get all the values of the named column, in row order.

        Parameters
        ----------
        name: str

        Returns
        -------
        list
        """
        if name not in self.columns:
            raise ValueError(f"Unknown column: '{name}' (columns: {self.columns})")
        index = self.columns.index(name)
        return [record[index] for record in self._records]

    def features(self):
        """
        Shorthand for `Dataset.column("features")`.
        """
        return self.column("features")

    def vector_sizes(self):
        """
        Returns
        -------
        set of int
            The distinct lengths of the "features" vectors in this `Dataset`.
        """
        return set(len(vector) for vector in self.features())

    def num_tokens(self):
        """
        The total of all term counts in the "features" column.

        Returns
        -------
        float
        """
        return float(sum(vector.sum() for vector in self.features()))

    def show(self, n=20):
        """
        Print the first `n` rows of this `Dataset`, one per line.
        """
        print(" | ".join(self.columns))
        for record in self._records[:n]:
            print(" | ".join(f"{list(value)}" for value in record))
        if len(self) > n:
            print(f"(showing {n} of {len(self)} rows)")

    def save(self, filename):
        """
        Saves the `Dataset` to the given file.
        Essentially uses a bz2-compressed Pickle format.

        Parameters
        ----------
        filename: str or pathlib.Path
            File to save the `Dataset` to.
        """
        filename = pathlib.Path(filename)
        with bz2.open(filename, "wb") as fp:
            pickle.dump(self, fp)


def load_dataset(filename):
    """
    Loads a `ldavec.dataset.Dataset` object from the given file.

    Parameters
    ----------
    filename: str or pathlib.Path
        The file to load the `ldavec.dataset.Dataset` object from.

    Returns
    -------
    ldavec.dataset.Dataset
    """
    with bz2.open(filename, "rb") as fp:
        loaded = pickle.load(fp)

    if not type(loaded) is Dataset:
        raise ValueError(f"File does not contain a `Dataset` object: '{filename}'")

    # Pickling drops the read-only flag on the vectors; restore it
    records = []
    for record in loaded:
        values = []
        for value in record:
            if value is not None:
                value = numpy.array(value, dtype=value.dtype)
                value.flags.writeable = False
            values.append(value)
        records.append(type(record)(*values))

    return Dataset(records, loaded.schema)
