#!/usr/bin/env python3
"""
nodelist.py - CiA 306-3 nodelist project (.cpj) files

A nodelist project lists the nodes of one or more networks:

    [Topology]
    NetName=Line A
    Nodes=0x02
    Node2Present=0x01
    Node2Name=Drive
    Node2DCFName=drive_2.dcf
    Node5Present=0x01
    EDSBaseName=eds/

Further networks use [Topology2], [Topology3], ... Node ids 1..127 are
scanned; other sections are kept verbatim. Section names and their order
are remembered, so a project read from a file is written back in the same
layout; networks added later get the next free [TopologyN] name.

Usage:
    from nodelist import read_nodelist, write_nodelist_to_string

    project = read_nodelist('plant.cpj')
    project.networks[0].nodes[2].dcf_file_name
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from errors import DcfWriteError
from ini_sections import Section, SectionMap, parse_sections


MAX_NODE_ID = 127

_TOPOLOGY_RE = re.compile(r'^topology(\d+)?$', re.IGNORECASE)


@dataclass
class NetworkNode:
    node_id: int
    present: bool = False
    name: Optional[str] = None
    refd: Optional[str] = None
    dcf_file_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'node_id': self.node_id, 'present': self.present}
        for key in ('name', 'refd', 'dcf_file_name'):
            if getattr(self, key) is not None:
                data[key] = getattr(self, key)
        return data


@dataclass
class NetworkTopology:
    net_name: Optional[str] = None
    net_refd: Optional[str] = None
    eds_base_name: Optional[str] = None
    nodes: Dict[int, NetworkNode] = field(default_factory=dict)
    # Section the network was read from; None for networks built in code
    section_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'net_name': self.net_name,
            'net_refd': self.net_refd,
            'eds_base_name': self.eds_base_name,
            'nodes': [self.nodes[k].to_dict() for k in sorted(self.nodes)],
        }


@dataclass
class NodelistProject:
    networks: List[NetworkTopology] = field(default_factory=list)
    additional_sections: Dict[str, Dict[str, str]] = field(default_factory=dict)
    # Section names in file order
    section_order: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'networks': [n.to_dict() for n in self.networks],
            'additional_sections': {k: dict(v) for k, v in self.additional_sections.items()},
        }


def is_topology_section(name: str) -> bool:
    return bool(_TOPOLOGY_RE.match(name))


def _parse_topology(section: Section) -> NetworkTopology:
    topology = NetworkTopology(
        net_name=section.get_value('NetName') or None,
        net_refd=section.get_value('NetRefd') or None,
        eds_base_name=section.get_value('EDSBaseName') or None,
    )
    for node_id in range(1, MAX_NODE_ID + 1):
        prefix = f'Node{node_id}'
        present = section.get_value(prefix + 'Present')
        if not present:
            continue
        topology.nodes[node_id] = NetworkNode(
            node_id=node_id,
            present=present.lower() == '0x01' or present == '1',
            name=section.get_value(prefix + 'Name') or None,
            refd=section.get_value(prefix + 'Refd') or None,
            dcf_file_name=section.get_value(prefix + 'DCFName') or None,
        )
    return topology


def parse_nodelist(sections: SectionMap) -> NodelistProject:
    project = NodelistProject()
    for name, section in sections.items():
        project.section_order.append(name)
        if is_topology_section(name):
            topology = _parse_topology(section)
            topology.section_name = name
            project.networks.append(topology)
        else:
            project.additional_sections[name] = section.to_dict()
    return project


def read_nodelist_from_string(content: Union[str, bytes]) -> NodelistProject:
    return parse_nodelist(parse_sections(content))


def read_nodelist(path: Union[str, Path]) -> NodelistProject:
    return read_nodelist_from_string(Path(path).read_bytes())


def _topology_lines(topology: NetworkTopology, section_name: str) -> List[str]:
    lines = [f'[{section_name}]']
    if topology.net_name:
        lines.append(f'NetName={topology.net_name}')
    if topology.net_refd:
        lines.append(f'NetRefd={topology.net_refd}')
    lines.append(f'Nodes=0x{len(topology.nodes):02X}')
    for node_id in sorted(topology.nodes):
        node = topology.nodes[node_id]
        prefix = f'Node{node_id}'
        lines.append(f"{prefix}Present={'0x01' if node.present else '0x00'}")
        if node.name:
            lines.append(f'{prefix}Name={node.name}')
        if node.refd:
            lines.append(f'{prefix}Refd={node.refd}')
        if node.dcf_file_name:
            lines.append(f'{prefix}DCFName={node.dcf_file_name}')
    if topology.eds_base_name:
        lines.append(f'EDSBaseName={topology.eds_base_name}')
    lines.append('')
    return lines


def _network_section_names(networks: List[NetworkTopology]) -> List[str]:
    """Keep recorded names; give the rest the next unused [Topology], [TopologyN]."""
    used = {n.section_name.lower() for n in networks if n.section_name}
    names = []
    number = 1
    for topology in networks:
        if topology.section_name:
            names.append(topology.section_name)
            continue
        while True:
            candidate = 'Topology' if number == 1 else f'Topology{number}'
            number += 1
            if candidate.lower() not in used:
                break
        used.add(candidate.lower())
        names.append(candidate)
    return names


def write_nodelist_to_string(project: NodelistProject) -> str:
    blocks: Dict[str, List[str]] = {}
    for name, topology in zip(_network_section_names(project.networks), project.networks):
        blocks.setdefault(name.lower(), _topology_lines(topology, name))
    for name, entries in project.additional_sections.items():
        block = [f'[{name}]'] + [f'{key}={value}' for key, value in entries.items()] + ['']
        blocks.setdefault(name.lower(), block)

    lines = []
    # Recorded order first; sections added since then follow
    for name in project.section_order:
        lines += blocks.pop(name.lower(), [])
    for block in blocks.values():
        lines += block
    return '\n'.join(lines) + '\n' if lines else ''


def write_nodelist(project: NodelistProject, path: Union[str, Path]):
    path = Path(path)
    try:
        path.write_text(write_nodelist_to_string(project), encoding='utf-8')
    except OSError as exc:
        raise DcfWriteError(f"Failed to write {path}: {exc}", target=str(path)) from exc
