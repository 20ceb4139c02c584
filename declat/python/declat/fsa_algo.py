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

from typing import List
from typing import Optional
from typing import Sequence

from .fsa import Arc
from .fsa import VectorFsa


def linear_fsa(labels: Sequence[int],
               weights: Optional[Sequence[float]] = None,
               aux_labels: Optional[Sequence[int]] = None,
               arc_type: str = 'standard') -> VectorFsa:
    '''Construct a linear FST from labels.

    State `i` has a single arc to state `i + 1` carrying `labels[i]`; the
    last state is final with weight 0. This is the shape expected by
    :func:`declat.move_post_to_arcs`.

    Args:
      labels:
        Input labels, e.g., `[2, 5, 8]`.
      weights:
        Optional. The arc weights (costs). If None, they are all 0.
      aux_labels:
        Optional. The output labels. If None, they equal `labels`.
      arc_type:
        Arc type of the returned FST.

    Returns:
      A :class:`VectorFsa` with `len(labels) + 1` states.
    '''
    if weights is None:
        weights = [0.0] * len(labels)
    if aux_labels is None:
        aux_labels = labels
    assert len(weights) == len(labels), (len(weights), len(labels))
    assert len(aux_labels) == len(labels), (len(aux_labels), len(labels))

    fsa = VectorFsa(arc_type)
    states: List[int] = [fsa.add_state() for _ in range(len(labels) + 1)]
    fsa.set_start(states[0])
    fsa.set_final(states[-1])
    for i, (label, aux_label, weight) in enumerate(
            zip(labels, aux_labels, weights)):
        fsa.add_arc(states[i], Arc(label, aux_label, weight, states[i + 1]))
    return fsa
