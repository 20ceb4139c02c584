#!/usr/bin/env python3
#
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

# To run this single test, use
#
#  pytest declat/python/tests/fst_io_test.py

import io
import math
import os
import struct
import tempfile
import unittest

import declat
from declat import Arc
from declat.fst_io import FstHeader
from declat.fst_io import IS_ALIGNED


def _make_fsa(arc_type: str = 'standard') -> declat.VectorFsa:
    # All weights are exactly representable as float32.
    fsa = declat.VectorFsa(arc_type)
    for _ in range(4):
        fsa.add_state()
    fsa.set_start(0)
    fsa.add_arc(0, Arc(1, 2, 0.5, 1))
    fsa.add_arc(0, Arc(3, 0, 1.25, 2))
    fsa.add_arc(1, Arc(0, 4, -0.75, 3))
    fsa.add_arc(2, Arc(5, 5, 2.0, 3))
    fsa.add_arc(2, Arc(0, 0, 0.0, 1))
    fsa.set_final(3, 0.125)
    return fsa


def _to_bytes(fsa, **kwargs) -> bytes:
    f = io.BytesIO()
    declat.write(fsa, f, **kwargs)
    return f.getvalue()


class TestFstIo(unittest.TestCase):

    def assert_same_fsa(self, a, b):
        assert a.arc_type == b.arc_type
        assert a.num_states() == b.num_states()
        assert a.num_arcs() == b.num_arcs()
        assert a.start == b.start
        for s in range(a.num_states()):
            assert a.final(s) == b.final(s)
            assert list(a.arcs(s)) == list(b.arcs(s))

    def test_round_trip(self):
        for arc_type in ['standard', 'log', 'log64']:
            src = _make_fsa(arc_type)
            opts = declat.FstReadOptions(arc_type=arc_type)
            for fst_type, cls in [('vector', declat.VectorFsa),
                                  ('const', declat.ConstFsa)]:
                for align in [False, True]:
                    data = _to_bytes(src, fst_type=fst_type, align=align)
                    fsa = declat.load(io.BytesIO(data), opts)
                    assert isinstance(fsa, cls)
                    assert fsa.fst_type == fst_type
                    self.assert_same_fsa(src, fsa)

                    # and back again from the loaded layout
                    data2 = _to_bytes(fsa, align=align)
                    assert data2 == data

    def test_round_trip_double_weights(self):
        fsa = declat.linear_fsa([1, 2, 3], weights=[0.1, 0.2, 0.3],
                                arc_type='log64')
        opts = declat.FstReadOptions(arc_type='log64')
        for fst_type in ['vector', 'const']:
            ans = declat.load(io.BytesIO(_to_bytes(fsa, fst_type=fst_type)),
                              opts)
            assert [a.weight for s in range(3) for a in ans.arcs(s)] == \
                    [0.1, 0.2, 0.3]

    def test_float_weights_are_rounded(self):
        fsa = declat.linear_fsa([1], weights=[0.1])
        ans = declat.load(io.BytesIO(_to_bytes(fsa)))
        [arc] = list(ans.arcs(0))
        assert arc.weight == struct.unpack('<f', struct.pack('<f', 0.1))[0]

    def test_empty_fsa(self):
        for fst_type in ['vector', 'const']:
            fsa = declat.VectorFsa()
            ans = declat.load(io.BytesIO(_to_bytes(fsa, fst_type=fst_type)))
            assert ans.num_states() == 0
            assert ans.num_arcs() == 0
            assert ans.start == -1

    def test_non_final_states(self):
        fsa = _make_fsa()
        ans = declat.load(io.BytesIO(_to_bytes(fsa, fst_type='const')))
        assert ans.final(0) == math.inf
        assert ans.final(3) == 0.125

    def test_header(self):
        data = _to_bytes(_make_fsa(), fst_type='const', align=True)
        hdr = FstHeader.read(io.BytesIO(data))
        assert hdr.fst_type == 'const'
        assert hdr.arc_type == 'standard'
        assert hdr.version == 2
        assert hdr.flags == IS_ALIGNED
        assert hdr.start == 0
        assert hdr.num_states == 4
        assert hdr.num_arcs == 5

    def test_arc_type_mismatch(self):
        for fst_type in ['vector', 'const']:
            data = _to_bytes(_make_fsa('standard'), fst_type=fst_type)
            with self.assertRaises(declat.FormatError):
                declat.load(io.BytesIO(data),
                            declat.FstReadOptions(arc_type='log'))

            data = _to_bytes(_make_fsa('log'), fst_type=fst_type)
            with self.assertRaises(declat.FormatError):
                declat.load(io.BytesIO(data))

        # The arc type is checked whatever the FST type is.
        f = io.BytesIO()
        FstHeader(fst_type='compact8_acceptor', arc_type='log',
                  version=2).write(f)
        f.seek(0)
        with self.assertRaises(declat.FormatError) as cm:
            declat.load(f)
        assert 'arc type log' in str(cm.exception)

    def test_unsupported_fst_type(self):
        for fst_type in ['compact8_acceptor', 'ngram', 'const16', '']:
            f = io.BytesIO()
            FstHeader(fst_type=fst_type, arc_type='standard',
                      version=2).write(f)
            f.seek(0)
            with self.assertRaises(declat.FormatError) as cm:
                declat.load(f)
            assert 'unsupported FST type' in str(cm.exception)

    def test_bad_header(self):
        for data in [b'', b'\x01\x02', b'abcdefgh',
                     _to_bytes(_make_fsa())[:20]]:
            with self.assertRaises(declat.FormatError) as cm:
                declat.load(io.BytesIO(data))
            assert 'header' in str(cm.exception)

    def test_truncated_body(self):
        for fst_type in ['vector', 'const']:
            data = _to_bytes(_make_fsa(), fst_type=fst_type)
            with self.assertRaises(declat.FormatError) as cm:
                declat.load(io.BytesIO(data[:-3]))
            assert 'after reading header' in str(cm.exception)

    def test_bad_destination_state(self):
        f = io.BytesIO()
        FstHeader(fst_type='const', arc_type='standard', version=2,
                  start=0, num_states=1, num_arcs=1).write(f)
        f.write(struct.pack('<fIIII', 0.0, 0, 1, 0, 0))
        f.write(struct.pack('<iifi', 1, 1, 0.0, 5))
        f.seek(0)
        with self.assertRaises(declat.FormatError):
            declat.load(f)

    def test_bad_start_state(self):
        fsa = _make_fsa()
        fsa.start = 10
        for fst_type in ['vector', 'const']:
            with self.assertRaises(declat.FormatError):
                declat.load(io.BytesIO(_to_bytes(fsa, fst_type=fst_type)))

    def test_const_arc_ranges(self):
        # The uint32 fields must not wrap around to negative counts.
        f = io.BytesIO()
        FstHeader(fst_type='const', arc_type='standard', version=2,
                  start=0, num_states=2, num_arcs=2).write(f)
        f.write(struct.pack('<fIIII', math.inf, 0, 0xFFFFFFFF, 0, 0))
        f.write(struct.pack('<fIIII', 0.0, 0xFFFFFFFF, 3, 0, 0))
        f.write(struct.pack('<iifi', 1, 1, 0.5, 1))
        f.write(struct.pack('<iifi', 2, 2, 0.5, 1))
        f.seek(0)
        with self.assertRaises(declat.FormatError) as cm:
            declat.load(f)
        assert 'after reading header' in str(cm.exception)

        # overlapping arc ranges
        f = io.BytesIO()
        FstHeader(fst_type='const', arc_type='standard', version=2,
                  start=0, num_states=2, num_arcs=2).write(f)
        f.write(struct.pack('<fIIII', math.inf, 0, 2, 0, 0))
        f.write(struct.pack('<fIIII', 0.0, 1, 1, 0, 0))
        f.write(struct.pack('<iifi', 1, 1, 0.5, 1))
        f.write(struct.pack('<iifi', 2, 2, 0.5, 1))
        f.seek(0)
        with self.assertRaises(declat.FormatError):
            declat.load(f)

    def test_huge_counts(self):
        for narcs in [2**60, 2**40]:
            f = io.BytesIO()
            FstHeader(fst_type='vector', arc_type='standard',
                      version=2, start=0, num_states=1,
                      num_arcs=1).write(f)
            f.write(struct.pack('<fq', 0.0, narcs))
            f.write(struct.pack('<iifi', 1, 1, 0.5, 0))
            f.seek(0)
            with self.assertRaises(declat.FormatError) as cm:
                declat.load(f)
            assert 'after reading header' in str(cm.exception)

        for num_arcs in [2**62, 2**36]:
            f = io.BytesIO()
            FstHeader(fst_type='const', arc_type='standard',
                      version=2, start=0, num_states=1,
                      num_arcs=num_arcs).write(f)
            f.write(struct.pack('<fIIII', 0.0, 0, 1, 0, 0))
            f.write(struct.pack('<iifi', 1, 1, 0.5, 0))
            f.seek(0)
            with self.assertRaises(declat.FormatError):
                declat.load(f)

        # symbol table name claiming 2 GB
        f = io.BytesIO()
        FstHeader(fst_type='vector', arc_type='standard', version=2,
                  flags=declat.fst_io.HAS_ISYMBOLS, start=0, num_states=0,
                  num_arcs=0).write(f)
        f.write(struct.pack('<ii', declat.symbol_table.SYMBOL_TABLE_MAGIC,
                            0x7FFFFFFF))
        f.write(b'words')
        f.seek(0)
        with self.assertRaises(declat.FormatError):
            declat.load(f)

        with tempfile.TemporaryDirectory() as tmp_dir:
            filename = os.path.join(tmp_dir, 'huge.fst')
            with open(filename, 'wb') as f:
                FstHeader(fst_type='vector', arc_type='standard',
                          version=2, start=0, num_states=1,
                          num_arcs=1).write(f)
                f.write(struct.pack('<fq', 0.0, 2**60))
            with self.assertRaises(declat.FormatError):
                declat.load_file(filename)

    def test_unknown_number_of_states(self):
        fsa = _make_fsa()
        f = io.BytesIO()
        FstHeader(fst_type='vector', arc_type='standard', version=2,
                  start=0).write(f)
        declat.fst_io._write_vector(fsa, f, False)
        f.seek(0)
        self.assert_same_fsa(fsa, declat.load(f))

    def test_stream_is_left_open(self):
        fsa1 = _make_fsa()
        fsa2 = declat.linear_fsa([7, 8, 9])
        f = io.BytesIO()
        declat.write(fsa1, f, fst_type='const')
        declat.write(fsa2, f, fst_type='vector')
        f.seek(0)

        self.assert_same_fsa(fsa1, declat.load(f))
        assert not f.closed
        self.assert_same_fsa(fsa2, declat.load(f))
        assert f.read() == b''

    def test_symbol_tables(self):
        fsa = _make_fsa()
        fsa.input_symbols = declat.SymbolTable.from_str('a 1\nb 3\nc 5')
        fsa.output_symbols = declat.SymbolTable.from_str('x 2\ny 4\nz 5')
        for fst_type in ['vector', 'const']:
            data = _to_bytes(fsa, fst_type=fst_type, align=True)
            ans = declat.load(io.BytesIO(data))
            self.assert_same_fsa(fsa, ans)
            assert ans.input_symbols == fsa.input_symbols
            assert ans.output_symbols == fsa.output_symbols

            ans = declat.load(io.BytesIO(data),
                              declat.FstReadOptions(read_symbols=False))
            self.assert_same_fsa(fsa, ans)
            assert ans.input_symbols is None
            assert ans.output_symbols is None

    def test_aligned_at_odd_offset(self):
        fsa = _make_fsa()
        f = io.BytesIO()
        f.write(b'\0' * 3)
        declat.write(fsa, f, fst_type='const', align=True)
        f.seek(3)
        self.assert_same_fsa(fsa, declat.load(f))

    def test_load_file(self):
        fsa = _make_fsa()
        with tempfile.TemporaryDirectory() as tmp_dir:
            filename = os.path.join(tmp_dir, 'HCLG.fst')
            declat.write_file(fsa, filename, fst_type='const')
            ans = declat.load_file(filename)
            assert isinstance(ans, declat.ConstFsa)
            self.assert_same_fsa(fsa, ans)

            with open(filename, 'wb') as f:
                f.write(b'not an fst')
            with self.assertRaises(declat.FormatError) as cm:
                declat.load_file(filename)
            assert filename in str(cm.exception)

            with self.assertRaises(IOError):
                declat.load_file(os.path.join(tmp_dir, 'missing.fst'))

    def test_rescale_loaded_fsa(self):
        src = declat.linear_fsa([1, 2], weights=[0.25, 0.5], arc_type='log')
        opts = declat.FstReadOptions(arc_type='log')
        alpha = [0.0, 0.5, 1.0]
        beta = [1.0, 0.5, 0.0]
        declat.move_post_to_arcs(src, alpha, beta)
        for fst_type in ['vector', 'const']:
            fsa = declat.load(
                io.BytesIO(_to_bytes(
                    declat.linear_fsa([1, 2], weights=[0.25, 0.5],
                                      arc_type='log'),
                    fst_type=fst_type)), opts)
            declat.move_post_to_arcs(fsa, alpha, beta)
            for s in range(3):
                for a, b in zip(fsa.arcs(s), src.arcs(s)):
                    assert abs(a.weight - b.weight) < 1e-6


if __name__ == '__main__':
    unittest.main()
