"""
General utility classes that are not technically a part of `ldavec` functionality
"""

import importlib


class LazyLoader:
    """
    Defers importing an expensive module until one of its members is first used.

    Parameters
    ----------
    module_name: str
        Module name to lazy load

    Examples
    --------
    >>> gensim = LazyLoader("gensim")
    >>> gensim._module is None
    True
    >>> lda_class = gensim.models.LdaModel
    >>> gensim._module is None
    False
    """

    def __init__(self, module_name):
        self.module_name = module_name
        self._module = None

    def __getattr__(self, item):
        if self._module is None:
            self._module = importlib.import_module(self.module_name)
        return getattr(self._module, item)
