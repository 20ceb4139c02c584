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
import re
from typing import List
from typing import Optional

from .errors import FormatError
from .fsa import Fsa
from .fsa import NO_STATE_ID

_INTEGER_PATTERN = re.compile(r'^[ \t]*[-+]?[0-9]+[ \t]*$')


def split_string_to_integers(s: str, delim: str = ':') -> List[int]:
    '''Split a string like "1:2:3" into a list of integers.

    An empty string gives an empty list. Empty fields, e.g., in "1::2",
    are not allowed.

    Raises:
      FormatError if a field is not an integer.
    '''
    if s == '':
        return []
    ans = []
    for field in s.split(delim):
        if not _INTEGER_PATTERN.match(field):
            raise FormatError(f'Invalid integer {field!r} in {s!r}')
        ans.append(int(field))
    return ans


def phones_to_list(s: str) -> List[int]:
    '''Parse a colon separated list of phone ids, e.g., the silence phones
    "1:2:3:4:5".

    Raises:
      FormatError if the string is malformed or has no phones.
    '''
    try:
        phones = split_string_to_integers(s, ':')
    except FormatError as e:
        raise FormatError(f'Invalid silence-phones string {s}') from e
    if len(phones) == 0:
        raise FormatError('No silence phones given!')
    return phones


def _weight_to_str(weight: float) -> str:
    if weight == math.inf:
        return 'Infinity'
    return f'{weight:g}'


def to_str(fsa: Fsa) -> str:
    '''Convert an FST to a string in the OpenFst text format.

    Every arc is printed as::

        src_state dest_state ilabel olabel weight

    and every final state as::

        state [final_weight]

    where the final weight is omitted if it is 0. Arcs of the start state
    come first, as fstprint does.

    Returns:
      A string representation of the FST.
    '''
    order = list(range(fsa.num_states()))
    if fsa.start != NO_STATE_ID:
        order.remove(fsa.start)
        order.insert(0, fsa.start)

    lines = []
    for s in order:
        for arc in fsa.arcs(s):
            lines.append(f'{s}\t{arc.nextstate}\t{arc.ilabel}\t{arc.olabel}'
                         f'\t{_weight_to_str(arc.weight)}')
        final = fsa.final(s)
        if final == 0:
            lines.append(f'{s}')
        elif final != math.inf:
            lines.append(f'{s}\t{_weight_to_str(final)}')
    return ''.join(line + '\n' for line in lines)


def to_dot(fsa: Fsa, title: Optional[str] = None) -> 'Digraph':  # noqa
    '''Visualize an FST via graphviz.

    Note:
      Graphviz is needed only when this function is called.

    Args:
      fsa:
        The input FST to be visualized. Its symbol tables, if any, are used
        for the arc labels.

      title:
        Optional. The title of the resulting visualization.
    Returns:
      a Diagraph from grahpviz.
    '''

    try:
        import graphviz
    except Exception:
        print(
            'You cannot use `to_dot` unless the graphviz package is installed.'
        )
        raise

    def label_to_str(label: int, symbols) -> str:
        if symbols is not None and label in symbols:
            label = symbols[label]
        if label in (0, '<eps>'):
            return 'ε'
        return str(label)

    graph_attr = {
        'rankdir': 'LR',
        'size': '8.5,11',
        'center': '1',
        'orientation': 'Portrait',
        'ranksep': '0.4',
        'nodesep': '0.25',
    }
    if title is not None:
        graph_attr['label'] = title

    default_node_attr = {
        'shape': 'circle',
        'style': 'solid',
        'fontsize': '14',
    }

    start_state_attr = {
        'shape': 'circle',
        'style': 'bold',
        'fontsize': '14',
    }

    final_state_attr = {
        'shape': 'doublecircle',
        'style': 'solid',
        'fontsize': '14',
    }

    dot = graphviz.Digraph(name='WFST', graph_attr=graph_attr)
    for s in range(fsa.num_states()):
        final = fsa.final(s)
        if final != math.inf:
            weight = f'{final:.2f}'.rstrip('0').rstrip('.')
            dot.node(str(s), label=f'{s}/{weight}', **final_state_attr)
        elif s == fsa.start:
            dot.node(str(s), label=str(s), **start_state_attr)
        else:
            dot.node(str(s), label=str(s), **default_node_attr)

    for s in range(fsa.num_states()):
        for arc in fsa.arcs(s):
            ilabel = label_to_str(arc.ilabel, fsa.input_symbols)
            olabel = label_to_str(arc.olabel, fsa.output_symbols)
            weight = f'{arc.weight:.2f}'.rstrip('0').rstrip('.')
            dot.edge(str(s), str(arc.nextstate),
                     label=f'{ilabel}:{olabel}/{weight}')
    return dot
