import pytest

from rota.models.company import StaffMember
from rota.models.import_row import OPEN_USER, UNKNOWN_USER, ImportIssue, RawImportRow
from rota.services import importer
from rota.services.errors import ImportBlockedError, PreconditionError
from rota.utils.timeutils import local_date, time_of_day

ROSTER = [
    StaffMember(_id="u_bella", name="Bella Smith", roles=["Bar Staff"]),
    StaffMember(_id="u_bob", name="Bob Smith", position="Chef"),
    StaffMember(_id="u_ann", name="Ann Lee", roles=["Server", "Bar Staff"]),
    StaffMember(_id="u_sam", name="Sam Green"),
]
BY_ID = {m.id: m for m in ROSTER}


def raw(name="Bella Smith", date="15/01/2024", start="09:00", end="17:00", role=None):
    return RawImportRow(name=name, date=date, start=start, end=end, role=role)


# -- name matching -----------------------------------------------------------

def test_exact_match_ignores_case_quotes_and_spacing():
    assert importer.match_user('  "bella   SMITH" ', ROSTER) == "u_bella"


def test_blank_name_is_an_open_shift():
    assert importer.match_user("   ", ROSTER) == OPEN_USER


def test_misspelt_name_still_matches():
    assert importer.match_user("Bela Smth", ROSTER) == "u_bella"


def test_first_name_alone_is_not_enough():
    # "bella" scores substring 20 + first 10, so it does match...
    assert importer.match_user("Bella", ROSTER) == "u_bella"
    # ...but a shared surname alone never clears the threshold
    assert importer.match_user("Jane Smith", ROSTER) == UNKNOWN_USER


def test_unrelated_name_is_unknown():
    assert importer.match_user("Zed Quinn", ROSTER) == UNKNOWN_USER


# -- dates and times ---------------------------------------------------------

@pytest.mark.parametrize("value, expected", [
    ("15/01/2024", "2024-01-15"),
    ("5-1-24", "2024-01-05"),
    ("2024-01-15", "2024-01-15"),
    ("2024/1/5", "2024-01-05"),
    ("15 Jan 2024", "2024-01-15"),
    ("31/02/2024", None),
    ("Jan 2024", None),
    ("", None),
])
def test_normalize_date(value, expected):
    assert importer.normalize_date(value) == expected


@pytest.mark.parametrize("value, expected", [
    ("9", "09:00"),
    ("9:5", "09:05"),
    ("0930", "09:30"),
    ("9.30pm", "21:30"),
    ("12am", "00:00"),
    ("17:00:00", "17:00"),
    ("25:00", None),
    ("later", None),
])
def test_normalize_time(value, expected):
    assert importer.normalize_time(value) == expected


# -- role inference ----------------------------------------------------------

def test_specific_raw_role_wins():
    assert importer.infer_role("u_ann", "Host", BY_ID) == "Host"


def test_generic_role_falls_back_to_the_single_known_role():
    assert importer.infer_role("u_bella", "staff", BY_ID) == "Bar Staff"
    assert importer.infer_role("u_bob", None, BY_ID) == "Chef"


def test_several_known_roles_are_ambiguous():
    assert importer.infer_role("u_ann", "", BY_ID) == ""


def test_no_known_roles_defaults_to_staff():
    assert importer.infer_role("u_sam", None, BY_ID) == "Staff"
    assert importer.infer_role(OPEN_USER, None, BY_ID) == "Staff"


def test_unknown_user_role_is_left_for_the_operator():
    assert importer.infer_role(UNKNOWN_USER, "Bar Staff", BY_ID) == ""


def test_role_inference_is_deterministic():
    rows = [raw(name="Ann Lee", role=None), raw(name="Bella Smith", role="general")]
    assert importer.reconcile_rows(rows, ROSTER) == importer.reconcile_rows(rows, ROSTER)


# -- reconciliation and remediation ------------------------------------------

def test_rows_are_sorted_and_flagged():
    rows = importer.reconcile_rows([
        raw(name="Ann Lee", date="16/01/2024"),
        raw(name="Nobody Known", date="15/01/2024", end=""),
        raw(name="Bella Smith", date="nonsense"),
    ], ROSTER)

    assert rows[0].parsedDate == ""
    assert rows[0].has(ImportIssue.INVALID_DATE)
    assert rows[1].rawName == "Nobody Known"
    assert set(rows[1].errors) == {"missing_end_time", "name_unknown", "ambiguous_role"}
    assert rows[2].errors == ["ambiguous_role"]


def test_fill_end_time_only_touches_rows_missing_one():
    rows = importer.reconcile_rows([raw(end=""), raw(date="16/01/2024", end="18:00")], ROSTER)
    filled = importer.fill_missing_end_times(rows, "22:00")
    assert [r.parsedEnd for r in filled] == ["22:00", "18:00"]
    assert not any(r.has(ImportIssue.MISSING_END_TIME) for r in filled)
    with pytest.raises(PreconditionError):
        importer.fill_missing_end_times(rows, "nonsense")


def test_copy_down_and_edit_revalidate():
    rows = importer.reconcile_rows([raw(), raw(name="Bob Smith", date="16/01/2024", start="")], ROSTER)
    assert rows[1].has(ImportIssue.MISSING_TIME)

    copied = importer.copy_down(rows, 0, "start")
    assert copied[1].parsedStart == "09:00"
    assert not copied[1].has(ImportIssue.MISSING_TIME)
    assert rows[1].has(ImportIssue.MISSING_TIME)

    edited = importer.edit_row(copied, 1, "role", "Porter")
    assert edited[1].finalRole == "Porter"
    with pytest.raises(PreconditionError):
        importer.copy_down(rows, 1, "start")


def test_reselect_reruns_role_inference():
    rows = importer.reconcile_rows([raw(name="Someone Else")], ROSTER)
    assert rows[0].has(ImportIssue.AMBIGUOUS_ROLE)

    rows = importer.reselect_user(rows, 0, "u_bella", ROSTER)
    assert rows[0].matchedUserId == "u_bella"
    assert rows[0].finalRole == "Bar Staff"
    assert rows[0].errors == []
    with pytest.raises(PreconditionError):
        importer.reselect_user(rows, 0, "u_ghost", ROSTER)


# -- commit ------------------------------------------------------------------

def test_commit_gate_reports_invalid_dates_first():
    rows = importer.reconcile_rows([raw(date="nope"), raw(name="Ann Lee")], ROSTER)
    with pytest.raises(ImportBlockedError) as exc:
        importer.check_commit_gate(rows)
    assert exc.value.code == "INVALID_DATE"


def test_commit_gate_blocks_ambiguous_roles():
    rows = importer.reconcile_rows([raw(name="Ann Lee")], ROSTER)
    with pytest.raises(ImportBlockedError) as exc:
        importer.check_commit_gate(rows)
    assert exc.value.code == "AMBIGUOUS_ROLE"
    assert exc.value.details == {"rows": [0]}


def test_commit_gate_blocks_missing_start():
    rows = importer.reconcile_rows([raw(start="")], ROSTER)
    with pytest.raises(ImportBlockedError) as exc:
        importer.check_commit_gate(rows)
    assert exc.value.code == "MISSING_TIME"


def test_build_shifts_with_unknown_name_and_missing_end():
    rows = importer.reconcile_rows([raw(name="Zed Quinn", role="Porter", end=""), raw(name="")], ROSTER)
    rows = importer.edit_row(rows, [r.rawName for r in rows].index("Zed Quinn"), "role", "Porter")

    shifts = importer.build_import_shifts(rows, "cmp", ROSTER, location_id="loc_main", location_name="Main Bar")

    unregistered = next(s for s in shifts if s.userName and "Zed" in s.userName)
    assert unregistered.userId is None
    assert unregistered.userName == "Zed Quinn (Unregistered)"
    assert unregistered.role == "Porter"
    assert unregistered.duration == 8 * 60 * 60 * 1000
    assert local_date(unregistered.startTime).isoformat() == "2024-01-15"
    assert time_of_day(unregistered.startTime) == (9, 0)

    open_shift = next(s for s in shifts if s is not unregistered)
    assert open_shift.userId is None and open_shift.userName is None
    assert open_shift.role == "Staff"
    assert all(s.status == "draft" and s.locationName == "Main Bar" for s in shifts)


def test_overnight_import_row_ends_next_day():
    rows = importer.reconcile_rows([raw(start="22:00", end="06:00")], ROSTER)
    shift = importer.build_import_shifts(rows, "cmp", ROSTER)[0]
    assert shift.duration == 8 * 60 * 60 * 1000


def test_posted_rows_with_malformed_times_are_revalidated():
    row = importer.reconcile_rows([raw()], ROSTER)[0]

    bad_start = row.copy(update={"parsedStart": "9am", "errors": []})
    with pytest.raises(ImportBlockedError) as exc:
        importer.build_import_shifts([bad_start], "cmp", ROSTER)
    assert exc.value.code == "MISSING_TIME"

    bad_end = row.copy(update={"parsedEnd": "25:00", "errors": []})
    shift = importer.build_import_shifts([bad_end], "cmp", ROSTER)[0]
    assert shift.duration == 8 * 60 * 60 * 1000
