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

from typing import Sequence
from typing import Union

import torch

from .errors import InvariantError
from .errors import NumericalError
from .fsa import Fsa
from .semiring import log_add_tensor
from .semiring import log_sub_tensor


def _to_scores(scores: Union[torch.Tensor, Sequence[float]],
               name: str) -> torch.Tensor:
    ans = torch.as_tensor(scores, dtype=torch.float64)
    if ans.ndim != 1:
        raise InvariantError(f'{name} must be 1-D. Given: {ans.ndim}-D')
    return ans


def move_post_to_arcs(fsa: Fsa,
                      alpha: Union[torch.Tensor, Sequence[float]],
                      beta: Union[torch.Tensor, Sequence[float]],
                      strict_chain: bool = True) -> None:
    '''Replace the weight of every arc with its posterior, given forward
    and backward scores computed elsewhere.

    For an arc with weight `w` leaving state `i`, with `(+)` and `(-)` the
    log-semiring addition and subtraction (see :mod:`declat.semiring`)::

        numer = (alpha[i] (+) w) (+) beta[i+1]
        w'    = numer (-) (alpha[i] (+) beta[i])

    Note:
      The three terms of `numer` are combined with `(+)`, not with the
      ordinary sum of costs along a path. This is the rescaling used with
      Kaldi lattices here and it is kept as is.

    Caution:
      The function modifies `fsa` **in-place**; the caller must not let
      anybody else read or write `fsa` during the call. Labels, states and
      destinations are never changed.

    Args:
      fsa:
        The lattice. With `strict_chain` it has to be a linear chain: all
        arcs leaving state `i` go to state `i + 1`. So the final state has
        no arcs and no score beyond `beta[num_states - 1]` is needed.
      alpha:
        Forward scores (costs), one per state.
      beta:
        Backward scores (costs), one per state.
      strict_chain:
        If True, the chain topology above is checked. If False, `beta` is
        indexed by the destination state of each arc instead of `i + 1`,
        which is the same for a chain but also works for other lattices.

    Raises:
      InvariantError if `alpha` or `beta` does not have one entry per
      state, or if `strict_chain` is True and `fsa` is not a chain. Nothing
      is modified in this case.
      NumericalError if the subtraction is undefined for some arc, i.e.,
      `numer >= alpha[i] (+) beta[i]`. Nothing is modified in this case
      either.
    '''
    alpha = _to_scores(alpha, 'alpha')
    beta = _to_scores(beta, 'beta')
    num_states = fsa.num_states()
    if alpha.numel() != num_states or beta.numel() != num_states:
        raise InvariantError(f'Expected {num_states} forward and backward '
                             f'scores. Given: {alpha.numel()} and '
                             f'{beta.numel()}')

    src = []
    dest = []
    weights = []
    for i in range(num_states):
        for arc in fsa.arcs(i):
            if strict_chain and arc.nextstate != i + 1:
                raise InvariantError(
                    f'Not a linear chain: arc from state {i} goes to '
                    f'state {arc.nextstate}')
            src.append(i)
            dest.append(arc.nextstate)
            weights.append(arc.weight)

    if len(src) == 0:
        return

    src = torch.tensor(src, dtype=torch.int64)
    dest = torch.tensor(dest, dtype=torch.int64)
    weights = torch.tensor(weights, dtype=torch.float64)

    alpha_beta = log_add_tensor(alpha, beta)
    numer = log_add_tensor(log_add_tensor(alpha[src], weights), beta[dest])
    try:
        post = log_sub_tensor(numer, alpha_beta[src])
    except NumericalError as e:
        k = e.index
        i = int(src[k])
        # index of the arc among those leaving state i
        j = k - int(torch.searchsorted(src, src[k:k + 1])[0])
        raise NumericalError(f'Cannot compute the posterior of arc {j} '
                             f'leaving state {i}: {e}') from e

    # Only write once every posterior is known.
    start = 0
    for i in range(num_states):
        n = fsa.num_arcs(i)
        for j, w in enumerate(post[start:start + n].tolist()):
            fsa.set_weight(i, j, w)
        start += n
