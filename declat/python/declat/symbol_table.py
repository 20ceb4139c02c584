# Copyright      2026  The declat authors
#
# See ../../../LICENSE for clarification regarding multiple authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import struct
import sys
from dataclasses import dataclass
from typing import BinaryIO
from typing import Dict
from typing import List
from typing import Optional
from typing import Sequence
from typing import TextIO
from typing import Union

from .errors import FormatError
from .io_utils import read_string
from .io_utils import read_struct
from .io_utils import write_string

# Magic number of a symbol table in the OpenFst binary format.
SYMBOL_TABLE_MAGIC = 2125658996


@dataclass(repr=False)  # Disable __repr__; word lists can be huge.
class SymbolTable(object):
    '''Map between integer labels found on the arcs and the strings they
    stand for, e.g., the words.txt of a Kaldi recipe.

    It can be read from and written to the text format (one `symbol id`
    pair per line) and the OpenFst binary format, which is used for symbol
    tables stored inside FST files.
    '''
    _id2sym: Dict[int, str]
    '''Map an integer to a symbol.
    '''

    _sym2id: Dict[str, int]
    '''Map a symbol to an integer.
    '''

    eps: str = '<eps>'
    '''Null symbol, always mapped to index 0.
    '''

    name: str = ''
    '''Name of the table; it is kept only for the binary format.
    '''

    def __post_init__(self):
        for idx, sym in self._id2sym.items():
            assert self._sym2id[sym] == idx
            assert idx >= 0

        for sym, idx in self._sym2id.items():
            assert idx >= 0
            assert self._id2sym[idx] == sym

        if 0 not in self._id2sym:
            self._id2sym[0] = self.eps
            self._sym2id[self.eps] = 0
        else:
            assert self._id2sym[0] == self.eps
            assert self._sym2id[self.eps] == 0

    @staticmethod
    def from_str(s: str) -> 'SymbolTable':
        '''Build a symbol table from a string.

        The string consists of lines. Every line has two fields separated
        by space(s), tab(s) or both. The first field is the symbol and the
        second the integer id of the symbol.

        Args:
          s:
            The input string with the format described above.
        Returns:
          An instance of :class:`SymbolTable`.
        '''
        id2sym: Dict[int, str] = dict()
        sym2id: Dict[str, int] = dict()

        for line in s.split('\n'):
            fields = line.split()
            if len(fields) == 0:
                continue  # skip empty lines
            if len(fields) != 2:
                raise FormatError(
                    f'Expect a line with 2 fields. Given: {len(fields)}')
            sym = fields[0]
            try:
                idx = int(fields[1])
            except ValueError:
                raise FormatError(f'Invalid id in line: {line.strip()}')
            if sym in sym2id:
                raise FormatError(f'Duplicated symbol {sym}')
            if idx in id2sym:
                raise FormatError(f'Duplicated id {idx}')
            id2sym[idx] = sym
            sym2id[sym] = idx

        return SymbolTable(_id2sym=id2sym, _sym2id=sym2id)

    @staticmethod
    def from_file(filename: str) -> 'SymbolTable':
        '''Build a symbol table from file.

        Every line in the symbol table file has two fields separated by
        space(s), tab(s) or both. The following is an example file:

        .. code-block::

            <eps> 0
            a 1
            b 2
            c 3

        Args:
          filename:
            Name of the symbol table file. Its format is documented above.

        Returns:
          An instance of :class:`SymbolTable`.

        '''
        with open(filename, 'r', encoding='utf-8') as f:
            return SymbolTable.from_str(f.read().strip())

    def to_str(self) -> str:
        return ''.join(f'{symbol} {idx}\n'
                       for idx, symbol in sorted(self._id2sym.items()))

    def to_file(self, filename: str):
        '''Serialize the SymbolTable to a file in the text format documented
        in :func:`from_file`.
        '''
        with open(filename, 'w', encoding='utf-8') as f:
            f.write(self.to_str())

    @staticmethod
    def read_binary(stream: BinaryIO) -> 'SymbolTable':
        '''Read a symbol table in the OpenFst binary format.

        Raises:
          FormatError if the data is truncated or is not a symbol table.
        '''
        (magic,) = read_struct(stream, '<i', 'symbol table magic number')
        if magic != SYMBOL_TABLE_MAGIC:
            raise FormatError(f'Bad symbol table magic number {magic}')
        name = read_string(stream, 'symbol table name')
        # The available key is recomputed from the ids on write.
        _, size = read_struct(stream, '<qq', 'symbol table size')
        if size < 0:
            raise FormatError(f'Bad symbol table size {size}')

        id2sym: Dict[int, str] = dict()
        sym2id: Dict[str, int] = dict()
        for _ in range(size):
            sym = read_string(stream, 'symbol')
            (idx,) = read_struct(stream, '<q', 'symbol id')
            if idx < 0 or idx in id2sym or sym in sym2id:
                raise FormatError(f'Bad symbol table entry {sym} {idx}')
            id2sym[idx] = sym
            sym2id[sym] = idx

        eps = id2sym.get(0, '<eps>')
        return SymbolTable(_id2sym=id2sym, _sym2id=sym2id, eps=eps,
                           name=name)

    def write_binary(self, stream: BinaryIO) -> None:
        '''Write the symbol table in the OpenFst binary format.'''
        stream.write(struct.pack('<i', SYMBOL_TABLE_MAGIC))
        write_string(stream, self.name)
        available_key = max(self._id2sym) + 1
        stream.write(struct.pack('<qq', available_key, len(self)))
        for idx, symbol in sorted(self._id2sym.items()):
            write_string(stream, symbol)
            stream.write(struct.pack('<q', idx))

    def add(self, symbol: str, index: Optional[int] = None) -> int:
        '''Add a new symbol to the SymbolTable.

        Args:
            symbol:
                The symbol to be added.
            index:
                Optional int id to which the symbol should be assigned.
                If it is not available, a ValueError will be raised.

        Returns:
            The int id to which the symbol has been assigned.
        '''
        # Already in the table? Return it's ID.
        if symbol in self._sym2id:
            return self._sym2id[symbol]
        # Specific ID not provided - use next available.
        if index is None:
            index = max(self._id2sym) + 1
        # Specific ID provided but not available.
        if index in self._id2sym:
            raise ValueError(f"Cannot assign id '{index}' to '{symbol}' - "
                             f"already occupied by {self._id2sym[index]}")
        self._sym2id[symbol] = index
        self._id2sym[index] = symbol
        return index

    def get(self, k: Union[int, str]) -> Union[str, int]:
        '''Get a symbol for an id or get an id for a symbol

        Args:
          k:
            If it is an id, it tries to find the symbol corresponding
            to the id; if it is a symbol, it tries to find the id
            corresponding to the symbol.

        Returns:
          An id or a symbol depending on the given `k`.
        '''
        if isinstance(k, int):
            return self._id2sym[k]
        elif isinstance(k, str):
            return self._sym2id[k]
        else:
            raise ValueError(f'Unsupported type {type(k)}.')

    def find(self, idx: int) -> str:
        '''Return the symbol of `idx`, or an empty string if there is none.
        '''
        return self._id2sym.get(idx, '')

    def merge(self, other: 'SymbolTable') -> 'SymbolTable':
        '''Create a union of two SymbolTables.
        Raises an AssertionError if the same IDs are occupied by
         different symbols.

        Args:
            other:
                A symbol table to merge with ``self``.

        Returns:
            A new symbol table.
        '''
        common_ids = set(self._id2sym).intersection(other._id2sym)
        assert self.eps == other.eps, f'Mismatched epsilon symbol: ' \
                                      f'{self.eps} != {other.eps}'
        for idx in common_ids:
            assert self[idx] == other[idx], f'ID conflict for id: {idx}, ' \
                                            f'self[idx] = "{self[idx]}", ' \
                                            f'other[idx] = "{other[idx]}"'
        return SymbolTable(
            _id2sym={**self._id2sym, **other._id2sym},
            _sym2id={**self._sym2id, **other._sym2id},
            eps=self.eps,
            name=self.name
        )

    @property
    def ids(self) -> List[int]:
        return sorted(self._id2sym)

    @property
    def symbols(self) -> List[str]:
        return [self._id2sym[idx] for idx in self.ids]

    def __getitem__(self, item: Union[int, str]) -> Union[str, int]:
        return self.get(item)

    def __contains__(self, item: Union[int, str]) -> bool:
        return item in self._id2sym if isinstance(item, int) else item in self._sym2id

    def __len__(self) -> int:
        return len(self._id2sym)


def print_partial_result(words: Sequence[int],
                         word_syms: SymbolTable,
                         line_break: bool = False,
                         file: Optional[TextIO] = None) -> None:
    '''Print the words of a (partial) decoding result, each followed by a
    space.

    Args:
      words:
        The word ids, e.g., the output labels of the best path.
      word_syms:
        Table mapping word ids to words.
      line_break:
        If True, end with an empty line; otherwise just flush so that a
        later call can continue on the same line.
      file:
        Where to print. Defaults to `sys.stdout`.

    Raises:
      FormatError if a word id is not in `word_syms`. It is raised before
      anything is printed.
    '''
    assert word_syms is not None
    if file is None:
        file = sys.stdout

    tokens = []
    for w in words:
        word = word_syms.find(int(w))
        if word == '':
            raise FormatError(f'Word-id {w} not in symbol table.')
        tokens.append(word)

    file.write(''.join(f'{word} ' for word in tokens))
    if line_break:
        file.write('\n\n')
    else:
        file.flush()
