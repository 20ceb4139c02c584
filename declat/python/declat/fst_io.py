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

'''
Reading and writing automata in the OpenFst binary format, e.g., the
HCLG.fst decoding graphs and lattices produced by Kaldi.

A file starts with a header naming the FST type (the layout of the rest
of the file) and the arc type (the semiring). We support the `vector`
and `const` FST types with the `standard`, `log` and `log64` arc types.
'''

import dataclasses
import logging
import struct
from dataclasses import dataclass
from typing import BinaryIO
from typing import Callable
from typing import Dict
from typing import Optional

import torch

from .errors import FormatError
from .fsa import Arc
from .fsa import ConstFsa
from .fsa import Fsa
from .fsa import NO_STATE_ID
from .fsa import VectorFsa
from .fsa import WEIGHT_DTYPES
from .io_utils import read_bytes
from .io_utils import read_string
from .io_utils import read_struct
from .io_utils import write_string
from .symbol_table import SymbolTable

FST_MAGIC = 2125659606

# Header flags
HAS_ISYMBOLS = 0x1
HAS_OSYMBOLS = 0x2
IS_ALIGNED = 0x4

# Property bits we set when writing.
EXPANDED = 0x1
MUTABLE = 0x2

# Aligned const FSTs pad their state and arc arrays to this boundary.
FILE_ALIGN = 16

VECTOR_FILE_VERSION = 2
CONST_FILE_VERSION = 2
CONST_MIN_FILE_VERSION = 1

# struct format of a weight for every arc type
_WEIGHT_FORMATS = {
    'standard': 'f',
    'log': 'f',
    'log64': 'd',
}


@dataclass
class FstHeader(object):
    '''The header found at the start of every binary FST.'''
    fst_type: str
    arc_type: str
    version: int
    flags: int = 0
    properties: int = 0
    start: int = NO_STATE_ID
    num_states: int = -1
    num_arcs: int = -1

    @staticmethod
    def read(stream: BinaryIO,
             source: str = '<unspecified>') -> 'FstHeader':
        '''Read an FST header from a binary stream.

        Raises:
          FormatError if the stream does not start with a valid header.
        '''
        try:
            (magic,) = read_struct(stream, '<i', 'magic number')
            if magic != FST_MAGIC:
                raise FormatError(f'Bad magic number {magic}')
            fst_type = read_string(stream, 'FST type')
            arc_type = read_string(stream, 'arc type')
            (version, flags, properties, start, num_states,
             num_arcs) = read_struct(stream, '<iiQqqq', 'header fields')
        except FormatError as e:
            raise FormatError(f'Reading FST: error reading FST header '
                              f'from {source}: {e}') from e
        return FstHeader(fst_type=fst_type,
                         arc_type=arc_type,
                         version=version,
                         flags=flags,
                         properties=properties,
                         start=start,
                         num_states=num_states,
                         num_arcs=num_arcs)

    def write(self, stream: BinaryIO) -> None:
        stream.write(struct.pack('<i', FST_MAGIC))
        write_string(stream, self.fst_type)
        write_string(stream, self.arc_type)
        stream.write(
            struct.pack('<iiQqqq', self.version, self.flags, self.properties,
                        self.start, self.num_states, self.num_arcs))


@dataclass
class FstReadOptions(object):
    source: str = '<unspecified>'
    '''Name of the data source, used in error messages.'''

    arc_type: str = 'standard'
    '''The arc type we expect to read. Files with any other arc type are
    rejected; their weights are never reinterpreted.'''

    read_symbols: bool = True
    '''If False, symbol tables stored in the file are skipped instead of
    being attached to the returned FST.'''


def _align_input(stream: BinaryIO) -> None:
    for _ in range(FILE_ALIGN):
        try:
            pos = stream.tell()
        except OSError as e:
            raise FormatError('Cannot read an aligned FST from a stream '
                              'without tell()') from e
        if pos % FILE_ALIGN == 0:
            return
        read_bytes(stream, 1, 'alignment padding')


def _align_output(stream: BinaryIO) -> None:
    pos = stream.tell()
    stream.write(b'\0' * (-pos % FILE_ALIGN))


def _int32_matrix(buf: bytes, num_cols: int) -> torch.Tensor:
    '''View packed records of `num_cols` 32-bit words as an int32 tensor.
    Floats in the records are reinterpreted, not converted.'''
    if len(buf) == 0:
        return torch.empty((0, num_cols), dtype=torch.int32)
    return torch.frombuffer(bytearray(buf),
                            dtype=torch.int32).reshape(-1, num_cols)


def _as_weights(words: torch.Tensor, arc_type: str) -> torch.Tensor:
    '''Reinterpret 1 (float) or 2 (double) int32 columns as weights.'''
    dtype = WEIGHT_DTYPES[arc_type]
    return words.contiguous().view(dtype).reshape(-1)


def _check_states(fsa_start: int, next_states, num_states: int) -> None:
    if not (fsa_start == NO_STATE_ID or 0 <= fsa_start < num_states):
        raise FormatError(f'Start state {fsa_start} out of range '
                          f'[0, {num_states})')
    for n in next_states:
        if not 0 <= n < num_states:
            raise FormatError(f'Destination state {n} out of range '
                              f'[0, {num_states})')


def _read_vector(stream: BinaryIO, hdr: FstHeader) -> VectorFsa:
    if hdr.version < VECTOR_FILE_VERSION:
        raise FormatError(f'vector FST version {hdr.version} is too old')
    w = _WEIGHT_FORMATS[hdr.arc_type]
    state_fmt = f'<{w}q'
    state_size = struct.calcsize(state_fmt)
    arc_fmt = f'<ii{w}i'
    arc_size = struct.calcsize(arc_fmt)

    finals = []
    arcs = []
    while hdr.num_states < 0 or len(finals) < hdr.num_states:
        if hdr.num_states < 0:
            # Unknown number of states: read until the end of the stream.
            buf = stream.read(state_size)
            if not buf:
                break
            if len(buf) != state_size:
                raise FormatError('Unexpected end of stream while reading '
                                  f'state {len(finals)}')
            final, narcs = struct.unpack(state_fmt, buf)
        else:
            final, narcs = read_struct(stream, state_fmt,
                                       f'state {len(finals)}')
        if narcs < 0:
            raise FormatError(f'Negative arc count {narcs} for state '
                              f'{len(finals)}')
        buf = read_bytes(stream, narcs * arc_size,
                         f'arcs of state {len(finals)}')
        finals.append(final)
        arcs.append([Arc(*a) for a in struct.iter_unpack(arc_fmt, buf)])

    _check_states(hdr.start, (a.nextstate for s in arcs for a in s),
                  len(finals))

    fsa = VectorFsa(hdr.arc_type)
    for final in finals:
        fsa.add_state(final)
    for s, state_arcs in enumerate(arcs):
        for arc in state_arcs:
            fsa.add_arc(s, arc)
    fsa.start = hdr.start
    return fsa


def _read_const(stream: BinaryIO, hdr: FstHeader) -> ConstFsa:
    if hdr.version < CONST_MIN_FILE_VERSION:
        raise FormatError(f'const FST version {hdr.version} is too old')
    if hdr.num_states < 0 or hdr.num_arcs < 0:
        raise FormatError('const FST header without state or arc count')
    w = _WEIGHT_FORMATS[hdr.arc_type]
    # The states and arcs are C structs dumped to disk. An arc has its
    # weight third; with a double weight the struct is padded to 24 bytes.
    state_fmt = f'<{w}IIII'
    arc_fmt = '<iifi' if w == 'f' else '<iidi4x'
    state_cols = struct.calcsize(state_fmt) // 4
    arc_cols = struct.calcsize(arc_fmt) // 4
    weight_cols = struct.calcsize(w) // 4

    aligned = (hdr.flags & IS_ALIGNED) != 0
    if aligned:
        _align_input(stream)
    states = _int32_matrix(
        read_bytes(stream, hdr.num_states * state_cols * 4, 'states'),
        state_cols)
    if aligned:
        _align_input(stream)
    arcs = _int32_matrix(
        read_bytes(stream, hdr.num_arcs * arc_cols * 4, 'arcs'), arc_cols)

    finals = _as_weights(states[:, :weight_cols], hdr.arc_type)
    # pos and narcs are uint32 on disk
    pos = states[:, weight_cols].to(torch.int64) & 0xFFFFFFFF
    narcs = states[:, weight_cols + 1].to(torch.int64) & 0xFFFFFFFF
    if hdr.num_states == 0:
        row_splits = torch.zeros(1, dtype=torch.int64)
    else:
        row_splits = torch.cat([pos[:1], pos + narcs])
    if (int(row_splits[0]) != 0 or
            bool((torch.diff(row_splits) < 0).any()) or
            not torch.equal(row_splits[1:-1], pos[1:]) or
            int(row_splits[-1]) != hdr.num_arcs):
        raise FormatError('Arcs of the const FST states are not contiguous')

    nextstate_col = 2 + weight_cols
    labels = arcs[:, [0, 1, nextstate_col]].contiguous()
    weights = _as_weights(arcs[:, 2:nextstate_col], hdr.arc_type)
    _check_states(hdr.start, labels[:, 2].tolist(), hdr.num_states)

    return ConstFsa(row_splits, labels, weights, finals,
                    start=hdr.start, arc_type=hdr.arc_type)


def _write_vector(fsa: Fsa, stream: BinaryIO, align: bool) -> None:
    w = _WEIGHT_FORMATS[fsa.arc_type]
    state_fmt = f'<{w}q'
    arc_fmt = f'<ii{w}i'
    for s in range(fsa.num_states()):
        stream.write(struct.pack(state_fmt, fsa.final(s), fsa.num_arcs(s)))
        for arc in fsa.arcs(s):
            stream.write(struct.pack(arc_fmt, *arc))


def _write_const(fsa: Fsa, stream: BinaryIO, align: bool) -> None:
    w = _WEIGHT_FORMATS[fsa.arc_type]
    state_fmt = f'<{w}IIII'
    arc_fmt = '<iifi' if w == 'f' else '<iidi4x'

    if align:
        _align_output(stream)
    pos = 0
    for s in range(fsa.num_states()):
        arcs = list(fsa.arcs(s))
        niepsilons = sum(1 for a in arcs if a.ilabel == 0)
        noepsilons = sum(1 for a in arcs if a.olabel == 0)
        stream.write(
            struct.pack(state_fmt, fsa.final(s), pos, len(arcs), niepsilons,
                        noepsilons))
        pos += len(arcs)

    if align:
        _align_output(stream)
    for s in range(fsa.num_states()):
        for arc in fsa.arcs(s):
            stream.write(struct.pack(arc_fmt, *arc))


# Maps the FST type found in a header to the function decoding the body.
_READERS: Dict[str, Callable[[BinaryIO, FstHeader], Fsa]] = {
    'vector': _read_vector,
    'const': _read_const,
}

_WRITERS: Dict[str, Callable[[Fsa, BinaryIO, bool], None]] = {
    'vector': _write_vector,
    'const': _write_const,
}

_FILE_VERSIONS = {
    'vector': VECTOR_FILE_VERSION,
    'const': CONST_FILE_VERSION,
}

_PROPERTIES = {
    'vector': EXPANDED | MUTABLE,
    'const': EXPANDED,
}


def load(stream: BinaryIO, opts: Optional[FstReadOptions] = None) -> Fsa:
    '''Read an FST from a binary stream positioned at its header.

    The stream is left open; closing it is up to the caller.

    Args:
      stream:
        A readable binary stream, e.g., an open file or `io.BytesIO`.
      opts:
        Read options. If None, a :class:`VectorFsa` or :class:`ConstFsa` of
        arc type `standard` is expected.

    Returns:
      A :class:`VectorFsa` if the FST type in the header is `vector`; a
      :class:`ConstFsa` if it is `const`.

    Raises:
      FormatError if the header cannot be read, the arc type is not
      `opts.arc_type`, the FST type is not supported, or the data after
      the header is corrupt.
    '''
    if opts is None:
        opts = FstReadOptions()
    if opts.arc_type not in WEIGHT_DTYPES:
        raise ValueError(f'Unsupported arc type {opts.arc_type}')

    hdr = FstHeader.read(stream, opts.source)
    if hdr.arc_type != opts.arc_type:
        raise FormatError(f'FST with arc type {hdr.arc_type} not supported '
                          f'(expected {opts.arc_type}).')
    reader = _READERS.get(hdr.fst_type)
    if reader is None:
        raise FormatError(f'Reading FST: unsupported FST type: '
                          f'{hdr.fst_type}')

    try:
        isymbols = osymbols = None
        if hdr.flags & HAS_ISYMBOLS:
            isymbols = SymbolTable.read_binary(stream)
        if hdr.flags & HAS_OSYMBOLS:
            osymbols = SymbolTable.read_binary(stream)
        fsa = reader(stream, hdr)
    except FormatError as e:
        raise FormatError(f'Error reading FST (after reading header) '
                          f'from {opts.source}: {e}') from e

    if opts.read_symbols:
        fsa.input_symbols = isymbols
        fsa.output_symbols = osymbols

    logging.debug(f'Read {hdr.fst_type} FST from {opts.source}: '
                  f'{fsa.num_states()} states, {fsa.num_arcs()} arcs')
    return fsa


def load_file(filename: str, opts: Optional[FstReadOptions] = None) -> Fsa:
    '''Read an FST, e.g., a decoding graph, from a file.

    See :func:`load` for `opts` and the return value.

    Raises:
      IOError if the file cannot be opened.
      FormatError as described in :func:`load`.
    '''
    if opts is None:
        opts = FstReadOptions(source=filename)
    elif opts.source == FstReadOptions.source:
        opts = dataclasses.replace(opts, source=filename)

    try:
        f = open(filename, 'rb')
    except OSError as e:
        raise IOError(f'Could not open decoding-graph FST {filename}') from e
    with f:
        return load(f, opts)


def write(fsa: Fsa,
          stream: BinaryIO,
          fst_type: Optional[str] = None,
          align: bool = False) -> None:
    '''Write an FST to a binary stream in the OpenFst format.

    Args:
      fsa:
        The FST to write. Its symbol tables, if any, are written too.
      stream:
        A writable binary stream.
      fst_type:
        `vector` or `const`. If None, the layout of `fsa` is used.
      align:
        If True and `fst_type` is `const`, pad the state and arc arrays
        to 16 bytes. It requires a stream supporting `tell()`.
    '''
    if fst_type is None:
        fst_type = fsa.fst_type
    if fst_type not in _WRITERS:
        raise ValueError(f'Unsupported FST type {fst_type}')
    align = align and fst_type == 'const'

    flags = 0
    if fsa.input_symbols is not None:
        flags |= HAS_ISYMBOLS
    if fsa.output_symbols is not None:
        flags |= HAS_OSYMBOLS
    if align:
        flags |= IS_ALIGNED

    hdr = FstHeader(fst_type=fst_type,
                    arc_type=fsa.arc_type,
                    version=_FILE_VERSIONS[fst_type],
                    flags=flags,
                    properties=_PROPERTIES[fst_type],
                    start=fsa.start,
                    num_states=fsa.num_states(),
                    num_arcs=fsa.num_arcs())
    hdr.write(stream)
    if fsa.input_symbols is not None:
        fsa.input_symbols.write_binary(stream)
    if fsa.output_symbols is not None:
        fsa.output_symbols.write_binary(stream)
    _WRITERS[fst_type](fsa, stream, align)


def write_file(fsa: Fsa,
               filename: str,
               fst_type: Optional[str] = None,
               align: bool = False) -> None:
    with open(filename, 'wb') as f:
        write(fsa, f, fst_type=fst_type, align=align)
