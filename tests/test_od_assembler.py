"""
Tests for the object dictionary assembler.

Covers:
- Metadata, index lists and entries (template and configuration dialects)
- Sub-object discovery range and triggers
- Compact storage side channels
- Modules, tools, dynamic channels, comments, dummy usage
- The additional section bag (unclaimed sections, ObjectLinks)
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'tools'))

from dialects import CONFIGURATION, TEMPLATE
from errors import EdsDecodeError
from ini_sections import parse_sections
from object_dictionary import DeviceConfigurationFile, ElectronicDataSheet, ObjectCategory
from od_assembler import ObjectDictionaryAssembler
from value_converter import AccessType, ObjectCode


DEVICE_INFO = "[DeviceInfo]\nVendorName=Acme\nProductName=Test\n\n"


def assemble(text, dialect=TEMPLATE):
    return ObjectDictionaryAssembler(dialect).assemble(parse_sections(text))


class TestEndToEnd:
    """Minimal document with one entry."""

    def test_minimal_entry(self, minimal_eds_text):
        """The single entry keeps its raw default value."""
        eds = assemble(minimal_eds_text)
        od = eds.object_dictionary

        assert list(od.objects) == [0x1000]
        obj = od.objects[0x1000]
        assert obj.parameter_name == 'Device Type'
        assert obj.access_type is AccessType.READ_ONLY
        assert obj.default_value == '0x00000191'
        assert obj.low_limit is None
        assert obj.high_limit is None
        assert obj.object_type == ObjectCode.VAR

    def test_document_types(self, minimal_eds_text):
        """The dialect decides the document type."""
        assert type(assemble(minimal_eds_text)) is ElectronicDataSheet
        assert isinstance(assemble(minimal_eds_text, CONFIGURATION), DeviceConfigurationFile)

    def test_fresh_tree_per_call(self, minimal_eds_text):
        """Two parses share nothing."""
        first = assemble(minimal_eds_text)
        second = assemble(minimal_eds_text)

        first.object_dictionary.objects[0x1000].parameter_name = 'changed'
        assert second.object_dictionary.objects[0x1000].parameter_name == 'Device Type'


class TestMetadata:

    def test_file_info(self, sample_eds_text):
        eds = assemble(sample_eds_text)

        assert eds.file_info.file_name == 'sample.eds'
        assert eds.file_info.file_revision == 2
        assert eds.file_info.eds_version == '4.0'
        assert eds.file_info.last_eds is None

    def test_file_info_defaults(self):
        """Missing [FileInfo] yields defaults."""
        eds = assemble(DEVICE_INFO)

        assert eds.file_info.file_version == 1
        assert eds.file_info.eds_version == '4.0'

    def test_device_info(self, sample_eds_text):
        info = assemble(sample_eds_text).device_info

        assert info.vendor_name == 'Acme'
        assert info.vendor_number == 0xABCD
        assert info.product_number == 0x1234
        assert info.revision_number == 0x00010002
        assert info.simple_boot_up_slave
        assert not info.simple_boot_up_master
        assert info.granularity == 8
        assert info.nr_of_rx_pdo == 1
        assert [k for k in (10, 20, 50, 125, 250, 500, 800, 1000)
                if info.supported_baud_rates.supports(k)] == [125, 250, 500]

    def test_granularity_default(self):
        """Granularity defaults to 8 when absent."""
        assert assemble(DEVICE_INFO).device_info.granularity == 8

    def test_missing_device_info(self):
        """[DeviceInfo] is the one mandatory section."""
        with pytest.raises(EdsDecodeError) as exc_info:
            assemble("[FileInfo]\nFileName=x.eds\n")

        assert exc_info.value.section_name == 'DeviceInfo'

    def test_device_info_case_insensitive(self):
        """Section names match in any case."""
        eds = assemble("[DEVICEINFO]\nvendorname=Acme\n")

        assert eds.device_info.vendor_name == 'Acme'
        assert eds.additional_sections == {}

    def test_malformed_literal_names_section(self):
        """A bad literal in a known section carries the section name."""
        with pytest.raises(EdsDecodeError) as exc_info:
            assemble("[DeviceInfo]\nVendorNumber=0xZZ\n")

        assert exc_info.value.section_name == 'DeviceInfo'
        assert 'VendorNumber' in str(exc_info.value)

    def test_commissioning(self, sample_dcf_text):
        dcf = assemble(sample_dcf_text, CONFIGURATION)
        dc = dcf.device_commissioning

        assert dc.node_id == 5
        assert dc.node_name == 'IO_Node5'
        assert dc.baudrate == 500
        assert dc.net_number == 1
        assert dc.network_name == 'Line A'
        assert dc.lss_serial_number == 12345
        assert dcf.file_info.last_eds == 'sample.eds'

    def test_commissioning_defaults(self):
        """Missing [DeviceCommissioning] yields node 1 at 250 kbit/s."""
        dc = assemble(DEVICE_INFO, CONFIGURATION).device_commissioning

        assert dc.node_id == 1
        assert dc.baudrate == 250
        assert dc.lss_serial_number is None

    def test_commissioning_is_bag_data_in_template(self):
        """Templates keep [DeviceCommissioning] as an additional section."""
        eds = assemble(DEVICE_INFO + "[DeviceCommissioning]\nNodeID=3\n")

        assert eds.additional_sections == {'DeviceCommissioning': {'NodeID': '3'}}


class TestIndexLists:

    def test_lists(self, sample_eds_text):
        od = assemble(sample_eds_text).object_dictionary

        assert od.mandatory_objects == [0x1000, 0x1018]
        assert od.optional_objects == [0x1800]
        assert od.manufacturer_objects == [0x2000]

    def test_count_larger_than_keys(self):
        """A declared count beyond the available keys yields fewer entries."""
        text = DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=3\n1=0x2000\n2=0x2001\n"

        assert assemble(text).object_dictionary.optional_objects == [0x2000, 0x2001]

    def test_key_beyond_count_ignored(self):
        """Keys beyond the declared count are ignored."""
        text = DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=1\n1=0x2000\n2=0x2001\n"

        assert assemble(text).object_dictionary.optional_objects == [0x2000]

    def test_zero_count_kept_as_additional(self):
        """An empty list section is not claimed."""
        text = DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=0\n"
        eds = assemble(text)

        assert eds.object_dictionary.optional_objects == []
        assert 'OptionalObjects' in eds.additional_sections

    def test_objects_by_category(self, sample_eds_text):
        od = assemble(sample_eds_text).object_dictionary

        assert [o.index for o in od.objects_by_category(ObjectCategory.MANDATORY)] == [0x1000, 0x1018]
        assert [o.index for o in od.objects_by_category(ObjectCategory.MANUFACTURER)] == [0x2000]

    def test_listed_index_resolves_any_spelling(self):
        """[01a0] is found for listed index 0x1A0."""
        text = DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=1\n1=0x1A0\n\n[01a0]\nParameterName=X\n"
        eds = assemble(text)

        assert eds.object_dictionary.objects[0x1A0].parameter_name == 'X'
        assert eds.additional_sections == {}


class TestEntries:

    def test_record_with_subs(self, sample_eds_text):
        obj = assemble(sample_eds_text).object_dictionary.objects[0x1018]

        assert obj.object_type == ObjectCode.RECORD
        assert obj.sub_number == 3
        assert obj.data_type is None
        assert sorted(obj.sub_objects) == [0, 1, 2]
        assert obj.sub_objects[1].parameter_name == 'Vendor ID'
        assert obj.sub_objects[2].object_type == ObjectCode.VAR

    def test_limits_and_flags(self, sample_eds_text):
        obj = assemble(sample_eds_text).object_dictionary.objects[0x2000]

        assert obj.access_type is AccessType.READ_WRITE_OUTPUT
        assert obj.low_limit == '0'
        assert obj.high_limit == '100'
        assert obj.pdo_mapping
        assert not obj.srdo_mapping
        assert obj.obj_flags == 0

    def test_unknown_object_type_kept(self):
        """An object code outside the enumeration is kept as an integer."""
        text = DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=1\n1=0x2000\n\n[2000]\nObjectType=0x3\n"

        assert assemble(text).object_dictionary.objects[0x2000].object_type == 3

    def test_zero_sub_number_is_absent(self):
        """SubNumber=0 decodes to None."""
        text = DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=1\n1=0x2000\n\n[2000]\nSubNumber=0\n"

        assert assemble(text).object_dictionary.objects[0x2000].sub_number is None

    def test_resolve_node_id_default(self, sample_eds_text):
        """$NODEID defaults resolve once a node id is known."""
        od = assemble(sample_eds_text).object_dictionary

        assert od.get_sub_object(0x1800, 1).default_value == '$NODEID+0x180'
        assert od.resolve_integer(0x1800, 1, node_id=5) == 0x185
        with pytest.raises(EdsDecodeError):
            od.resolve_integer(0x1800, 1)

    def test_configured_values_ignored_in_template(self):
        """ParameterValue is a configuration field only."""
        text = (DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=1\n1=0x2000\n\n"
                "[2000]\nParameterValue=5\n")

        assert assemble(text).object_dictionary.objects[0x2000].parameter_value is None
        assert assemble(text, CONFIGURATION).object_dictionary.objects[0x2000].parameter_value == '5'

    def test_pdo_helpers(self, sample_eds_text):
        od = assemble(sample_eds_text).object_dictionary

        assert [o.index for o in od.pdo_communication_parameters(transmit=True)] == [0x1800]
        assert od.pdo_communication_parameters(transmit=False) == []
        assert od.pdo_mapping_parameters() == []


class TestSubObjectDiscovery:

    def test_no_synthesized_sub(self, sample_eds_text):
        """SubNumber=2 with only sub0/sub1 yields exactly two sub-objects."""
        obj = assemble(sample_eds_text).object_dictionary.objects[0x1800]

        assert obj.sub_number == 2
        assert sorted(obj.sub_objects) == [0, 1]

    def test_sub_beyond_range_is_additional(self, sample_eds_text):
        """A sub-section outside [0, SubNumber] is not claimed."""
        eds = assemble(sample_eds_text + "\n[1800sub5]\nParameterName=Extra\n")

        assert 5 not in eds.object_dictionary.objects[0x1800].sub_objects
        assert 'Extra' == eds.additional_sections['1800sub5']['ParameterName']

    @pytest.mark.parametrize("object_type", ['0x8', '0x9'])
    def test_array_record_trigger_both_dialects(self, object_type):
        """ARRAY and RECORD scan sub-sections in both dialects."""
        text = (DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=1\n1=0x2000\n\n"
                f"[2000]\nObjectType={object_type}\n\n[2000sub0]\nParameterName=Count\n")

        assert list(assemble(text).object_dictionary.objects[0x2000].sub_objects) == [0]
        assert list(assemble(text, CONFIGURATION).object_dictionary.objects[0x2000].sub_objects) == [0]

    def test_defstruct_trigger_template_only(self):
        """DEFSTRUCT scans sub-sections only in the template dialect."""
        text = (DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=1\n1=0x0040\n\n"
                "[40]\nObjectType=0x6\n\n[40sub0]\nParameterName=Count\n")

        eds = assemble(text)
        dcf = assemble(text, CONFIGURATION)

        assert list(eds.object_dictionary.objects[0x40].sub_objects) == [0]
        assert dcf.object_dictionary.objects[0x40].sub_objects == {}
        assert '40sub0' in dcf.additional_sections

    def test_var_with_sub_number_triggers(self):
        """An explicit SubNumber triggers the scan even for VAR."""
        text = (DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=1\n1=0x2000\n\n"
                "[2000]\nObjectType=0x7\nSubNumber=1\n\n[2000sub0]\nParameterName=A\n"
                "\n[2000sub1]\nParameterName=B\n")

        assert sorted(assemble(text).object_dictionary.objects[0x2000].sub_objects) == [0, 1]

    def test_var_without_sub_number(self):
        """A plain VAR does not claim sub-sections."""
        text = (DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=1\n1=0x2000\n\n"
                "[2000]\nObjectType=0x7\n\n[2000sub0]\nParameterName=A\n")
        eds = assemble(text)

        assert eds.object_dictionary.objects[0x2000].sub_objects == {}
        assert '2000sub0' in eds.additional_sections


class TestCompactStorage:

    def test_rows_overlay_discovered_subs(self, sample_dcf_text):
        """Value/Denotation rows land on existing sub-objects only."""
        dcf = assemble(sample_dcf_text, CONFIGURATION)
        obj = dcf.object_dictionary.objects[0x1F22]

        assert obj.compact_sub_obj == 3
        assert sorted(obj.sub_objects) == [1, 2]
        assert obj.sub_objects[1].parameter_value == '0x11'
        assert obj.sub_objects[2].parameter_value == '0x22'
        assert obj.sub_objects[1].denotation == 'First node'
        assert obj.sub_objects[2].denotation is None

    def test_row_for_missing_sub_dropped(self, sample_dcf_text):
        """Row 3 has no sub-object and vanishes without error."""
        dcf = assemble(sample_dcf_text, CONFIGURATION)

        assert 3 not in dcf.object_dictionary.objects[0x1F22].sub_objects
        assert '1F22Value' not in dcf.additional_sections
        assert dcf.additional_sections == {}

    def test_no_discovered_subs(self):
        """Compact rows without any sub-sections are all dropped."""
        text = (DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=1\n1=0x1F22\n\n"
                "[1F22]\nObjectType=0x8\nCompactSubObj=2\n\n"
                "[1F22Value]\nNrOfEntries=2\n1=0x1\n2=0x2\n")
        dcf = assemble(text, CONFIGURATION)

        assert dcf.object_dictionary.objects[0x1F22].sub_objects == {}
        assert dcf.additional_sections == {}

    def test_untriggered_object_keeps_side_channel(self):
        """A VAR without SubNumber does not claim its Value section."""
        text = (DEVICE_INFO + "[OptionalObjects]\nSupportedObjects=1\n1=0x2000\n\n"
                "[2000]\nObjectType=0x7\n\n[2000Value]\nNrOfEntries=1\n1=0x1\n")
        dcf = assemble(text, CONFIGURATION)

        assert '2000Value' in dcf.additional_sections

    def test_sub_object_configured_values(self, sample_dcf_text):
        obj = assemble(sample_dcf_text, CONFIGURATION).object_dictionary.objects[0x1600]

        assert obj.sub_objects[0].parameter_value == '1'
        assert obj.sub_objects[1].denotation == 'Digital inputs'
        assert obj.sub_objects[1].parameter_value is None


class TestAdditionalSections:

    def test_bag_contents_in_order(self, sample_eds_text):
        """Unlisted objects, vendor sections and ObjectLinks stay in the bag."""
        eds = assemble(sample_eds_text)

        assert list(eds.additional_sections) == ['2000ObjectLinks', '3000', 'VendorSpecific']
        assert eds.additional_sections['VendorSpecific'] == {'Foo': 'bar', 'Baz': '1'}

    def test_object_links_parsed_and_kept(self, sample_eds_text):
        """ObjectLinks are parsed into the entry and also kept verbatim."""
        eds = assemble(sample_eds_text)

        assert eds.object_dictionary.objects[0x2000].object_links == [0x1800]
        assert eds.additional_sections['2000ObjectLinks'] == {'ObjectLinks': '1', '1': '0x1800'}

    def test_orphan_object_links(self):
        """ObjectLinks for a missing entry only live in the bag."""
        eds = assemble(DEVICE_INFO + "[5000ObjectLinks]\nObjectLinks=1\n1=0x1000\n")

        assert eds.object_dictionary.objects == {}
        assert '5000ObjectLinks' in eds.additional_sections

    def test_bag_is_a_copy(self):
        """Bag entries are plain dicts detached from the tokenizer output."""
        sections = parse_sections(DEVICE_INFO + "[Vendor]\nKey=1\n")
        eds = ObjectDictionaryAssembler(TEMPLATE).assemble(sections)

        eds.additional_sections['Vendor']['Key'] = '2'
        assert sections['Vendor']['Key'] == '1'

    def test_connected_modules(self, sample_dcf_text):
        assert assemble(sample_dcf_text, CONFIGURATION).connected_modules == [1, 3]

    def test_partition(self, sample_eds_text):
        """Each section is either read into the tree or left in the bag."""
        sections = parse_sections(sample_eds_text)
        claimed, bag = ObjectDictionaryAssembler(TEMPLATE).partition(sections)

        assert bag == ['2000ObjectLinks', '3000', 'VendorSpecific']
        assert claimed == [name for name in sections if name not in bag]
        assert 'DummyUsage' in claimed
        assert '1018sub2' in claimed

    def test_partition_compact_storage(self, sample_dcf_text):
        """Compact storage sections count as read."""
        claimed, bag = ObjectDictionaryAssembler(CONFIGURATION).partition(
            parse_sections(sample_dcf_text))

        assert '1F22Value' in claimed
        assert bag == []


MODULES_EDS = DEVICE_INFO + """\
[SupportedModules]
NrOfEntries=2

[M1ModuleInfo]
ProductName=Input module
ProductVersion=2
ProductRevision=1
OrderCode=IM-8

[M1FixedObjects]
NrOfEntries=1
1=0x6000

[M1Fixed6000]
ParameterName=Read inputs
ObjectType=0x8
DataType=0x0005

[M1Fixed6000sub0]
ParameterName=Number of inputs
ObjectType=0x7
DataType=0x0005
AccessType=ro
DefaultValue=1

[M1SubExtends]
NrOfEntries=1
1=0x6200

[M1SubExt6200]
ParameterName=Write outputs
DataType=0x0005
AccessType=rww
PDOMapping=1
Count=1
ObjExtend=0x1

[M1Comments]
Lines=1
Line1=Eight inputs

[M2ModuleInfo]
ProductName=Output module

[M3ModuleInfo]
ProductName=Undeclared
"""


class TestModules:

    def test_module_info(self):
        modules = assemble(MODULES_EDS).supported_modules

        assert [m.module_number for m in modules] == [1, 2]
        assert modules[0].product_name == 'Input module'
        assert modules[0].product_version == 2
        assert modules[0].order_code == 'IM-8'
        assert modules[1].product_version == 1

    def test_fixed_objects(self):
        module = assemble(MODULES_EDS).supported_modules[0]

        assert module.fixed_objects == [0x6000]
        definition = module.fixed_object_definitions[0x6000]
        assert definition.parameter_name == 'Read inputs'
        assert definition.object_type == ObjectCode.ARRAY
        assert definition.sub_objects[0].default_value == '1'

    def test_sub_extensions(self):
        module = assemble(MODULES_EDS).supported_modules[0]

        assert module.sub_extends == [0x6200]
        ext = module.sub_extension_definitions[0x6200]
        assert ext.access_type is AccessType.READ_WRITE_OUTPUT
        assert ext.pdo_mapping
        assert ext.count == '1'
        assert ext.obj_extend == 1

    def test_module_comments(self):
        module = assemble(MODULES_EDS).supported_modules[0]

        assert module.comments.comment_lines == {1: 'Eight inputs'}

    def test_undeclared_module_is_additional(self):
        """Modules beyond NrOfEntries stay in the bag."""
        eds = assemble(MODULES_EDS)

        assert list(eds.additional_sections) == ['M3ModuleInfo']


class TestToolsAndChannels:

    TEXT = DEVICE_INFO + """\
[Tools]
Items=2

[Tool1]
Name=Configurator
Command=conf.exe $DCF

[Tool2]
Name=Viewer
Command=view.exe

[DynamicChannels]
NrOfSeg=1
Type1=0x0007
Dir1=rww
Range1=0xA080-0xA0BF
PPOffset1=0
"""

    def test_tools(self):
        tools = assemble(self.TEXT).tools

        assert [(t.name, t.command) for t in tools] == [
            ('Configurator', 'conf.exe $DCF'), ('Viewer', 'view.exe')]

    def test_dynamic_channels(self):
        channels = assemble(self.TEXT).dynamic_channels

        assert len(channels.segments) == 1
        segment = channels.segments[0]
        assert segment.type == 7
        assert segment.dir is AccessType.READ_WRITE_OUTPUT
        assert segment.range == '0xA080-0xA0BF'

    def test_zero_segments(self):
        """NrOfSeg=0 means no dynamic channels."""
        eds = assemble(DEVICE_INFO + "[DynamicChannels]\nNrOfSeg=0\n")

        assert eds.dynamic_channels is None
        assert 'DynamicChannels' in eds.additional_sections


class TestCommentsAndDummyUsage:

    def test_comments(self, sample_eds_text):
        comments = assemble(sample_eds_text).comments

        assert comments.lines == 2
        assert comments.comment_lines == {1: 'Sample device', 2: 'Second line'}

    def test_dummy_usage(self, sample_eds_text):
        assert assemble(sample_eds_text).object_dictionary.dummy_usage == {1: False, 2: True}

    def test_dummy_usage_ignores_other_keys(self):
        eds = assemble(DEVICE_INFO + "[DummyUsage]\nDummy0005=1\nNote=x\nDummyZZ=1\n")

        assert eds.object_dictionary.dummy_usage == {5: True}
