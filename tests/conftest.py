import argparse
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

import pytest

PROJECT_DIR = Path(__file__).resolve().parent.parent
if str(PROJECT_DIR) not in sys.path:
    sys.path.insert(0, str(PROJECT_DIR))

import registry_ir  # noqa: E402


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    vk_xml = tmp_path / "vk.xml"
    vk_xml.write_text("<registry />\n", encoding="utf-8")
    return {
        "vk_xml": vk_xml,
        "dump_ir": tmp_path / "out" / "ir.json",
    }


@pytest.fixture
def missing_path(tmp_path: Path) -> Path:
    return tmp_path / "missing"


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "vk_xml": existing_paths["vk_xml"],
            "prefix": "vk",
            "api": None,
            "all_apis": False,
            "dump_ir": None,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_registry_root() -> Callable[[str], ET.Element]:
    def _make_registry_root(inner_xml: str) -> ET.Element:
        return ET.fromstring(f"<registry>{inner_xml}</registry>")

    return _make_registry_root


@pytest.fixture
def make_spec(
    make_registry_root: Callable[[str], ET.Element],
) -> Callable[..., registry_ir.SpecificationModel]:
    def _make_spec(
        inner_xml: str, apis: list[str] | None = None
    ) -> registry_ir.SpecificationModel:
        return registry_ir.build_specification(make_registry_root(inner_xml), apis)

    return _make_spec


@pytest.fixture
def make_context() -> Callable[..., registry_ir.ConversionContext]:
    def _make_context(prefix: str = "vk") -> registry_ir.ConversionContext:
        return registry_ir.default_context(prefix)

    return _make_context


@pytest.fixture
def sample_registry_xml() -> str:
    return """
    <types>
        <type category="basetype">typedef <type>uint32_t</type> <name>VkFlags</name>;</type>
        <type category="basetype">typedef <type>uint32_t</type> <name>VkBool32</name>;</type>
        <type requires="VkCullModeFlagBits" category="bitmask">typedef <type>VkFlags</type> <name>VkCullModeFlags</name>;</type>
        <type category="bitmask">typedef <type>VkFlags</type> <name>VkInstanceCreateFlags</name>;</type>
        <type category="handle" parent=""><type>VK_DEFINE_HANDLE</type>(<name>VkInstance</name>)</type>
        <type category="handle" parent="VkDevice"><type>VK_DEFINE_NON_DISPATCHABLE_HANDLE</type>(<name>VkBuffer</name>)</type>
        <type name="VkStructureType" category="enum"/>
        <type name="VkCullModeFlagBits" category="enum"/>
        <type name="VkResult" category="enum"/>
        <type category="struct" name="VkApplicationInfo">
            <member values="VK_STRUCTURE_TYPE_APPLICATION_INFO"><type>VkStructureType</type> <name>sType</name></member>
            <member optional="true">const <type>void</type>* <name>pNext</name></member>
            <member optional="true" len="null-terminated">const <type>char</type>* <name>pApplicationName</name></member>
            <member><type>uint32_t</type> <name>apiVersion</name></member>
        </type>
        <type category="struct" name="VkRasterState">
            <member><type>VkCullModeFlags</type> <name>cullMode</name></member>
            <member><type>float</type> <name>blendConstants</name>[4]</member>
            <member><type>uint32_t</type> <name>layerCount</name></member>
            <member len="layerCount">const <type>char</type>* const* <name>ppLayerNames</name></member>
        </type>
        <type category="union" name="VkClearColorValue">
            <member><type>float</type> <name>float32</name>[4]</member>
            <member><type>int32_t</type> <name>int32</name>[4]</member>
            <member><type>uint32_t</type> <name>uint32</name>[4]</member>
        </type>
    </types>
    <enums name="API Constants">
        <enum type="uint32_t" value="256" name="VK_MAX_PHYSICAL_DEVICE_NAME_SIZE"/>
        <enum type="float" value="1000.0F" name="VK_LOD_CLAMP_NONE"/>
        <enum type="uint64_t" value="(~0ULL)" name="VK_WHOLE_SIZE"/>
    </enums>
    <enums name="VkStructureType" type="enum">
        <enum value="0" name="VK_STRUCTURE_TYPE_APPLICATION_INFO"/>
    </enums>
    <enums name="VkCullModeFlagBits" type="bitmask">
        <enum value="0" name="VK_CULL_MODE_NONE"/>
        <enum bitpos="0" name="VK_CULL_MODE_FRONT_BIT"/>
    </enums>
    <enums name="VkResult" type="enum">
        <enum value="0" name="VK_SUCCESS"/>
    </enums>
    <commands>
        <command>
            <proto><type>VkResult</type> <name>vkCreateInstance</name></proto>
            <param>const <type>VkApplicationInfo</type>* <name>pCreateInfo</name></param>
            <param><type>VkInstance</type>* <name>pInstance</name></param>
        </command>
        <command>
            <proto><type>void</type> <name>vkDestroyInstance</name></proto>
            <param><type>VkInstance</type> <name>instance</name></param>
        </command>
        <command>
            <proto><type>VkResult</type> <name>vkCreateSurfaceKHR</name></proto>
            <param><type>VkInstance</type> <name>instance</name></param>
        </command>
    </commands>
    <feature api="vulkan" name="VK_VERSION_1_0" number="1.0">
        <require>
            <command name="vkCreateInstance"/>
            <command name="vkDestroyInstance"/>
        </require>
    </feature>
    <extensions>
        <extension name="VK_KHR_surface" number="1" supported="vulkan,vulkansc">
            <require>
                <enum value="25" name="VK_KHR_SURFACE_SPEC_VERSION"/>
                <enum value="&quot;VK_KHR_surface&quot;" name="VK_KHR_SURFACE_EXTENSION_NAME"/>
                <enum offset="0" extends="VkResult" dir="-" name="VK_ERROR_SURFACE_LOST_KHR"/>
                <enum name="VK_COLORSPACE_SRGB_NONLINEAR_KHR" alias="VK_COLOR_SPACE_SRGB_NONLINEAR_KHR"/>
                <command name="vkCreateSurfaceKHR"/>
            </require>
        </extension>
        <extension name="VK_KHR_disabled" number="2" supported="disabled">
            <require>
                <command name="vkCreateInstance"/>
            </require>
        </extension>
    </extensions>
    """
