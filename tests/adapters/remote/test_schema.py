from __future__ import annotations

from syncbridge.adapters.remote import BatchResponse, ErrorResponse, ObjectPage, batch_item_results
from syncbridge.domain.ports import RecordUpdate


def test_object_page_without_paging_has_no_cursor() -> None:
    page = ObjectPage.model_validate({"results": [{"id": 7, "properties": {"a": 1.5}}]})

    assert page.next_after is None
    assert page.results[0].id == "7"
    assert page.results[0].properties == {"a": "1.5"}


def test_error_response_finds_the_offending_property_in_nested_errors() -> None:
    error = ErrorResponse.model_validate(
        {
            "message": "Batch input invalid",
            "category": "CONFLICTING_UNIQUE_VALUE",
            "errors": [{"message": "taken", "context": {"propertyName": ["project_number"]}}],
            "correlationId": "ignored",
        }
    )

    assert error.is_unique_conflict
    assert error.offending_property == "project_number"


def test_error_response_without_details() -> None:
    error = ErrorResponse.model_validate({"message": "nope", "category": "VALIDATION_ERROR"})

    assert not error.is_unique_conflict
    assert error.offending_property is None


def test_rejection_wins_over_confirmation() -> None:
    response = BatchResponse.model_validate(
        {
            "results": [{"id": "T1"}, {"id": "T2"}],
            "errors": [{"context": {"ids": ["T2"]}}],
        }
    )

    results = batch_item_results(
        [RecordUpdate("T1", {"a": "1"}), RecordUpdate("T2", {"a": "1"})], response
    )

    assert [(result.id, result.ok, result.error) for result in results] == [
        ("T1", True, None),
        ("T2", False, "rejected"),
    ]
