"""
文件工具与数据模型单元测试
"""

import pytest

from promptfusion.models.work_item import SourceImage, WorkItem, WorkflowStatus
from promptfusion.utils.file_utils import (
    build_download_name,
    build_source_image,
    detect_image_content_type,
    get_file_extension,
    is_valid_image_extension,
)
from promptfusion.utils.id_utils import generate_uuid
from tests.utils.mock_utils import make_image_bytes


@pytest.mark.unit
class TestFileUtils:
    """文件工具测试"""

    def test_extension_helpers(self):
        assert get_file_extension("Photo.JPEG") == ".jpeg"
        assert is_valid_image_extension(".png") is True
        assert is_valid_image_extension(".txt") is False

    def test_detect_content_type(self):
        assert detect_image_content_type(make_image_bytes("PNG")) == "image/png"
        assert detect_image_content_type(make_image_bytes("JPEG")) == "image/jpeg"
        assert detect_image_content_type(b"not an image") is None

    def test_build_source_image_uses_detected_type(self):
        source = build_source_image("scan.png", make_image_bytes("JPEG"))
        assert source.content_type == "image/jpeg"
        assert source.stem == "scan"

    def test_build_source_image_rejects_invalid(self):
        with pytest.raises(ValueError):
            build_source_image("empty.png", b"")
        with pytest.raises(ValueError):
            build_source_image("notes.txt", b"plain text")

    def test_download_name(self):
        assert build_download_name(1, "beach") == "batch-1-beach.png"

    def test_generate_uuid_is_unique(self):
        assert generate_uuid() != generate_uuid()
        assert len(generate_uuid()) == 36


@pytest.mark.unit
class TestWorkItemModel:
    """工作条目模型测试"""

    def _item(self, **kwargs) -> WorkItem:
        source = SourceImage(file_name="a.png", content_type="image/png", data=b"123")
        return WorkItem(id=generate_uuid(), source_image=source, **kwargs)

    def test_consistency(self):
        assert self._item().check_consistency() is True
        assert self._item(status=WorkflowStatus.COMPLETED, result_image="u").check_consistency() is True
        assert self._item(status=WorkflowStatus.ERROR, error_message="e").check_consistency() is True
        assert self._item(status=WorkflowStatus.COMPLETED).check_consistency() is False
        assert self._item(result_image="u").check_consistency() is False
        assert self._item(
            status=WorkflowStatus.ERROR, error_message="e", result_image="u"
        ).check_consistency() is False

    def test_to_dict_hides_image_data_by_default(self):
        data = self._item().to_dict()
        assert data["status"] == "pending"
        assert data["source_image"] == {"file_name": "a.png", "content_type": "image/png", "size": 3}

        with_data = self._item().to_dict(include_image_data=True)
        assert with_data["source_image"]["data_url"] == "data:image/png;base64,MTIz"
