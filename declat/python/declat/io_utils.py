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

# Primitive readers/writers for the OpenFst binary format.
# All values are little-endian.

import struct
import sys
from typing import BinaryIO
from typing import Tuple

from .errors import FormatError


# Sizes above this are read piecewise, so that a corrupt count fails on
# the short read instead of allocating the whole buffer up front.
_CHUNK_SIZE = 1 << 24


def read_bytes(stream: BinaryIO, size: int, what: str) -> bytes:
    '''Read exactly `size` bytes.

    Raises:
      FormatError if `size` is invalid or the stream ends early.
    '''
    if size < 0 or size > sys.maxsize:
        raise FormatError(f'Invalid size {size} while reading {what}')
    if size <= _CHUNK_SIZE:
        buf = stream.read(size)
    else:
        chunks = []
        remaining = size
        while remaining > 0:
            chunk = stream.read(min(remaining, _CHUNK_SIZE))
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        buf = b''.join(chunks)
    if buf is None or len(buf) != size:
        raise FormatError(f'Unexpected end of stream while reading {what}')
    return buf


def read_struct(stream: BinaryIO, fmt: str, what: str) -> Tuple:
    '''Read and unpack `struct.calcsize(fmt)` bytes.

    Raises:
      FormatError if the stream ends early.
    '''
    return struct.unpack(fmt, read_bytes(stream, struct.calcsize(fmt), what))


def read_string(stream: BinaryIO, what: str) -> str:
    (n,) = read_struct(stream, '<i', what)
    if n < 0:
        raise FormatError(f'Negative string length {n} while reading {what}')
    try:
        return read_bytes(stream, n, what).decode('utf-8')
    except UnicodeDecodeError as e:
        raise FormatError(f'Invalid UTF-8 while reading {what}') from e


def write_string(stream: BinaryIO, s: str) -> None:
    b = s.encode('utf-8')
    stream.write(struct.pack('<i', len(b)))
    stream.write(b)
