import torch  # noqa

from . import fsa
from . import semiring
from . import utils

from .errors import FormatError
from .errors import InvariantError
from .errors import NumericalError

from .fsa import Arc
from .fsa import ConstFsa
from .fsa import Fsa
from .fsa import VectorFsa
from .fsa_algo import linear_fsa

from .fst_io import FstHeader
from .fst_io import FstReadOptions
from .fst_io import load
from .fst_io import load_file
from .fst_io import write
from .fst_io import write_file

from .posterior import move_post_to_arcs

from .semiring import log_add
from .semiring import log_sub

from .symbol_table import SymbolTable
from .symbol_table import print_partial_result

from .utils import phones_to_list
from .utils import split_string_to_integers
from .utils import to_dot
from .utils import to_str

from .version import __version__
from .version import git_revision
from .version import version_info
