"""
pytest configuration and fixtures for the EDS/DCF tools.

Provides:
- tools/ on sys.path
- Hypothesis profiles (HYPOTHESIS_PROFILE=default|ci|dev|debug)
- Sample EDS/DCF/CPJ texts and files
"""

import os
import sys
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings

# Add tools to path
sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))


# Default profile: balanced speed and coverage
settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
)

# CI profile: more thorough testing
settings.register_profile(
    "ci",
    max_examples=500,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)

# Dev profile: fast iteration
settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
)

# Debug profile: verbose output
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)

settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))


SAMPLE_EDS = """\
; Sample 16 channel I/O device
[FileInfo]
FileName=sample.eds
FileVersion=1
FileRevision=2
EDSVersion=4.0
Description=Sample I/O device
CreatedBy=Acme

[DeviceInfo]
VendorName=Acme
VendorNumber=0x0000ABCD
ProductName=IO-16
ProductNumber=0x1234
RevisionNumber=0x00010002
OrderCode=IO16-A
BaudRate_125=1
BaudRate_250=1
BaudRate_500=1
SimpleBootUpSlave=1
Granularity=8
NrOfRXPDO=1
NrOfTXPDO=1
LSS_Supported=0

[DummyUsage]
Dummy0001=0
Dummy0002=1

[MandatoryObjects]
SupportedObjects=2
1=0x1000
2=0x1018

[OptionalObjects]
SupportedObjects=1
1=0x1800

[ManufacturerObjects]
SupportedObjects=1
1=0x2000

[1000]
ParameterName=Device Type
ObjectType=0x7
DataType=0x0007
AccessType=ro
DefaultValue=0x00000191
PDOMapping=0

[1018]
ParameterName=Identity Object
ObjectType=0x9
SubNumber=3

[1018sub0]
ParameterName=Number of entries
ObjectType=0x7
DataType=0x0005
AccessType=ro
DefaultValue=2
PDOMapping=0

[1018sub1]
ParameterName=Vendor ID
ObjectType=0x7
DataType=0x0007
AccessType=ro
DefaultValue=0x0000ABCD
PDOMapping=0

[1018sub2]
ParameterName=Product Code
DataType=0x0007
AccessType=ro
DefaultValue=0x1234
PDOMapping=0

[1800]
ParameterName=TPDO1 communication parameter
ObjectType=0x9
SubNumber=2

[1800sub0]
ParameterName=Highest sub-index supported
ObjectType=0x7
DataType=0x0005
AccessType=ro
DefaultValue=2
PDOMapping=0

[1800sub1]
ParameterName=COB-ID
ObjectType=0x7
DataType=0x0007
AccessType=rw
DefaultValue=$NODEID+0x180
PDOMapping=0

[2000]
ParameterName=Vendor Parameter
ObjectType=0x7
DataType=0x0006
AccessType=rww
DefaultValue=0
LowLimit=0
HighLimit=100
PDOMapping=1

[2000ObjectLinks]
ObjectLinks=1
1=0x1800

[3000]
ParameterName=Unlisted
ObjectType=0x7
DataType=0x0005
AccessType=rw

[VendorSpecific]
Foo=bar
Baz=1

[Comments]
Lines=2
Line1=Sample device
Line2=Second line
"""


SAMPLE_DCF = """\
[FileInfo]
FileName=sample.dcf
FileVersion=1
FileRevision=3
EDSVersion=4.0
LastEDS=sample.eds

[DeviceInfo]
VendorName=Acme
ProductName=IO-16
BaudRate_250=1

[DeviceCommissioning]
NodeID=5
NodeName=IO_Node5
Baudrate=500
NetNumber=1
NetworkName=Line A
CANopenManager=0
LSS_SerialNumber=12345

[MandatoryObjects]
SupportedObjects=1
1=0x1000

[OptionalObjects]
SupportedObjects=2
1=0x1600
2=0x1F22

[1000]
ParameterName=Device Type
ObjectType=0x7
DataType=0x0007
AccessType=ro
DefaultValue=0x00000191
ParameterValue=0x00000191
PDOMapping=0

[1600]
ParameterName=RPDO1 mapping parameter
ObjectType=0x9
SubNumber=2

[1600sub0]
ParameterName=Number of mapped objects
ObjectType=0x7
DataType=0x0005
AccessType=rw
DefaultValue=1
ParameterValue=1

[1600sub1]
ParameterName=Mapping entry 1
ObjectType=0x7
DataType=0x0007
AccessType=rw
DefaultValue=0x62000108
Denotation=Digital inputs

[1F22]
ParameterName=Concise DCF
ObjectType=0x8
DataType=0x000F
AccessType=rw
CompactSubObj=3

[1F22sub1]
ParameterName=Node 1
ObjectType=0x7
DataType=0x000F
AccessType=rw

[1F22sub2]
ParameterName=Node 2
ObjectType=0x7
DataType=0x000F
AccessType=rw

[1F22Value]
NrOfEntries=3
1=0x11
2=0x22
3=0x33

[1F22Denotation]
NrOfEntries=1
1=First node

[ConnectedModules]
NrOfEntries=2
1=1
2=3
"""


SAMPLE_CPJ = """\
[Topology]
NetName=Line A
Nodes=0x02
Node2Present=0x01
Node2Name=Drive
Node2DCFName=drive_2.dcf
Node5Present=1
Node5Refd=K5
EDSBaseName=eds/

[Topology2]
NetName=Line B
Nodes=0x01
Node7Present=0x00

[ProjectInfo]
Author=Acme
"""


MINIMAL_EDS = """\
[DeviceInfo]
VendorName=Acme
ProductName=Minimal

[MandatoryObjects]
SupportedObjects=1
1=0x1000

[1000]
ParameterName=Device Type
AccessType=ro
DefaultValue=0x00000191
"""


@pytest.fixture
def sample_eds_text():
    return SAMPLE_EDS


@pytest.fixture
def sample_dcf_text():
    return SAMPLE_DCF


@pytest.fixture
def sample_cpj_text():
    return SAMPLE_CPJ


@pytest.fixture
def minimal_eds_text():
    return MINIMAL_EDS


@pytest.fixture
def sample_eds_file(tmp_path):
    path = tmp_path / "sample.eds"
    path.write_text(SAMPLE_EDS)
    return path


@pytest.fixture
def sample_dcf_file(tmp_path):
    path = tmp_path / "sample.dcf"
    path.write_text(SAMPLE_DCF)
    return path


# Markers for test categorization
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
