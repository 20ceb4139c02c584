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

import math
from typing import Iterator
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Protocol

import torch

from .symbol_table import SymbolTable

# Arc types we can hold, with the dtype used for their weights.
# `standard` is the tropical semiring of OpenFst (StdArc), `log` and
# `log64` the log semiring in single and double precision.
WEIGHT_DTYPES = {
    'standard': torch.float32,
    'log': torch.float32,
    'log64': torch.float64,
}

NO_STATE_ID = -1

# The semiring zero: the weight of non-final states.
ZERO_WEIGHT = math.inf


class Arc(NamedTuple):
    '''An arc of a weighted automaton. The state it leaves is implied by
    where it is stored. `weight` is a cost, i.e., -log(prob).
    '''
    ilabel: int
    olabel: int
    weight: float
    nextstate: int


class Fsa(Protocol):
    '''What the rest of declat needs from a weighted automaton.

    It is implemented by :class:`VectorFsa` (mutable layout) and
    :class:`ConstFsa` (compact layout). States are numbered `0` to
    `num_states() - 1`.

    Only the weights can be changed through this interface; the topology
    (states, arc endpoints and labels) stays as it was built or read.
    Callers that change weights must have exclusive access to the object
    during the change; there is no internal locking.
    '''
    fst_type: str
    arc_type: str
    start: int
    input_symbols: Optional[SymbolTable]
    output_symbols: Optional[SymbolTable]

    def num_states(self) -> int:
        ...

    def num_arcs(self, state: Optional[int] = None) -> int:
        ...

    def arcs(self, state: int) -> Iterator[Arc]:
        ...

    def final(self, state: int) -> float:
        ...

    def set_weight(self, state: int, index: int, weight: float) -> None:
        ...


class VectorFsa(object):
    '''An editable automaton; arcs are kept in one Python list per state.

    This corresponds to the `vector` FST type of OpenFst.

    Example::

        fsa = VectorFsa()
        s0 = fsa.add_state()
        s1 = fsa.add_state()
        fsa.set_start(s0)
        fsa.set_final(s1)
        fsa.add_arc(s0, Arc(1, 1, 0.5, s1))
    '''
    fst_type = 'vector'

    def __init__(self, arc_type: str = 'standard') -> None:
        if arc_type not in WEIGHT_DTYPES:
            raise ValueError(f'Unsupported arc type {arc_type}')
        self.arc_type = arc_type
        self.start = NO_STATE_ID
        self.input_symbols: Optional[SymbolTable] = None
        self.output_symbols: Optional[SymbolTable] = None
        self._finals: List[float] = []
        self._arcs: List[List[Arc]] = []

    @classmethod
    def from_fsa(cls, fsa: Fsa) -> 'VectorFsa':
        '''Copy any automaton into a new VectorFsa.'''
        ans = cls(fsa.arc_type)
        for s in range(fsa.num_states()):
            ans.add_state(fsa.final(s))
            ans._arcs[s].extend(fsa.arcs(s))
        ans.start = fsa.start
        ans.input_symbols = fsa.input_symbols
        ans.output_symbols = fsa.output_symbols
        return ans

    def num_states(self) -> int:
        return len(self._finals)

    def num_arcs(self, state: Optional[int] = None) -> int:
        '''Return the number of arcs leaving `state`, or the total number
        of arcs if `state` is None.'''
        if state is None:
            return sum(len(arcs) for arcs in self._arcs)
        return len(self._arcs[state])

    def arcs(self, state: int) -> Iterator[Arc]:
        return iter(self._arcs[state])

    def final(self, state: int) -> float:
        return self._finals[state]

    def add_state(self, final: float = ZERO_WEIGHT) -> int:
        self._finals.append(float(final))
        self._arcs.append([])
        return len(self._finals) - 1

    def add_arc(self, state: int, arc: Arc) -> None:
        assert 0 <= arc.nextstate < self.num_states(), arc
        self._arcs[state].append(
            Arc(int(arc.ilabel), int(arc.olabel), float(arc.weight),
                int(arc.nextstate)))

    def set_start(self, state: int) -> None:
        assert 0 <= state < self.num_states()
        self.start = state

    def set_final(self, state: int, weight: float = 0.0) -> None:
        self._finals[state] = float(weight)

    def set_weight(self, state: int, index: int, weight: float) -> None:
        '''Overwrite the weight of the `index`-th arc leaving `state`.'''
        arcs = self._arcs[state]
        arcs[index] = arcs[index]._replace(weight=float(weight))

    def __str__(self) -> str:
        from .utils import to_str
        return to_str(self)


class ConstFsa(object):
    '''A compact, read-only-topology automaton stored in torch tensors.

    This corresponds to the `const` FST type of OpenFst. Arcs of state `s`
    are rows `row_splits[s]` to `row_splits[s+1] - 1` of the following
    tensors:

    arcs_tensor
      A 2-D `torch.Tensor` of dtype `torch.int32` with 3 columns: the input
      label, the output label and the destination state.

    weights
      A 1-D `torch.Tensor` with one cost per arc. Its dtype is given by the
      arc type, see `WEIGHT_DTYPES`.

    finals
      A 1-D `torch.Tensor` with the final weight of every state; `inf` for
      states that are not final.

    Caution:
      The states and arcs cannot be changed once constructed. Weights can
      be overwritten with :func:`set_weight`.
    '''
    fst_type = 'const'

    def __init__(self,
                 row_splits: torch.Tensor,
                 arcs: torch.Tensor,
                 weights: torch.Tensor,
                 finals: torch.Tensor,
                 start: int = NO_STATE_ID,
                 arc_type: str = 'standard') -> None:
        if arc_type not in WEIGHT_DTYPES:
            raise ValueError(f'Unsupported arc type {arc_type}')
        dtype = WEIGHT_DTYPES[arc_type]
        assert row_splits.ndim == 1 and row_splits.dtype == torch.int64
        assert arcs.ndim == 2 and arcs.shape[1] == 3
        assert arcs.dtype == torch.int32
        assert weights.shape == (arcs.shape[0],)
        assert finals.shape == (row_splits.numel() - 1,)
        assert int(row_splits[-1]) == arcs.shape[0]

        self.arc_type = arc_type
        self.start = start
        self.row_splits = row_splits
        self.arcs_tensor = arcs
        self.weights = weights.to(dtype)
        self.finals = finals.to(dtype)
        self.input_symbols: Optional[SymbolTable] = None
        self.output_symbols: Optional[SymbolTable] = None

    @classmethod
    def from_fsa(cls, fsa: Fsa) -> 'ConstFsa':
        '''Compact any automaton into a new ConstFsa.'''
        row_splits = [0]
        arcs = []
        weights = []
        finals = []
        for s in range(fsa.num_states()):
            for arc in fsa.arcs(s):
                arcs.append([arc.ilabel, arc.olabel, arc.nextstate])
                weights.append(arc.weight)
            row_splits.append(len(arcs))
            finals.append(fsa.final(s))

        dtype = WEIGHT_DTYPES[fsa.arc_type]
        ans = cls(torch.tensor(row_splits, dtype=torch.int64),
                  torch.tensor(arcs, dtype=torch.int32).reshape(-1, 3),
                  torch.tensor(weights, dtype=dtype),
                  torch.tensor(finals, dtype=dtype),
                  start=fsa.start,
                  arc_type=fsa.arc_type)
        ans.input_symbols = fsa.input_symbols
        ans.output_symbols = fsa.output_symbols
        return ans

    def num_states(self) -> int:
        return self.finals.numel()

    def num_arcs(self, state: Optional[int] = None) -> int:
        if state is None:
            return self.arcs_tensor.shape[0]
        return int(self.row_splits[state + 1] - self.row_splits[state])

    def _arc_range(self, state: int):
        if not 0 <= state < self.num_states():
            raise IndexError(f'State {state} out of range')
        return int(self.row_splits[state]), int(self.row_splits[state + 1])

    def arcs(self, state: int) -> Iterator[Arc]:
        begin, end = self._arc_range(state)
        labels = self.arcs_tensor[begin:end].tolist()
        weights = self.weights[begin:end].tolist()
        for (ilabel, olabel, nextstate), weight in zip(labels, weights):
            yield Arc(ilabel, olabel, weight, nextstate)

    def final(self, state: int) -> float:
        return float(self.finals[state])

    def set_weight(self, state: int, index: int, weight: float) -> None:
        '''Overwrite the weight of the `index`-th arc leaving `state`.'''
        begin, end = self._arc_range(state)
        if not 0 <= index < end - begin:
            raise IndexError(f'Arc {index} out of range for state {state}')
        self.weights[begin + index] = weight

    def __str__(self) -> str:
        from .utils import to_str
        return to_str(self)
