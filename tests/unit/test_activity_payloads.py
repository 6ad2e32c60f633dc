"""Activity payload validation tests."""

import pytest

from dancehub.achievements.activity import validate_details
from dancehub.achievements.errors import InvalidActivity


class TestValidateDetails:
    def test_camel_case_keys_normalized(self):
        details = validate_details("view_course", {"courseId": "salsa-101", "courseType": "salsa"})
        assert details == {"course_id": "salsa-101", "course_type": "salsa"}

    def test_snake_case_keys_accepted(self):
        details = validate_details("view_course", {"course_id": "salsa-101"})
        assert details == {"course_id": "salsa-101"}

    def test_missing_required_field(self):
        with pytest.raises(InvalidActivity) as exc_info:
            validate_details("view_course", {})
        assert exc_info.value.action_type == "view_course"
        assert exc_info.value.errors
        assert not exc_info.value.retryable

    def test_completion_rate_bounds(self):
        with pytest.raises(InvalidActivity):
            validate_details("complete_profile", {"completionRate": 150})

    def test_share_platform_default_method(self):
        assert validate_details("share_platform", None) == {"method": "link"}

    def test_extra_keys_kept(self):
        details = validate_details("search_partners", {"danceStyle": "salsa"})
        assert details == {"danceStyle": "salsa"}

    def test_unknown_type_accepts_any_payload(self):
        assert validate_details("watch_video", {"videoId": "v1"}) == {"videoId": "v1"}

    def test_whitespace_stripped(self):
        details = validate_details("view_school", {"schoolId": "  school-9 "})
        assert details == {"school_id": "school-9"}
