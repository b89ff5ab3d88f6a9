"""
Group a teacher's consultation records per student.
"""

from typing import Dict, Iterable, List, Optional, Set

from consultlog.core.behavior.models import ConsultationRecord, StudentGroup, build_student_key


def group_consultations(
    records: Iterable[ConsultationRecord],
    selections: Optional[Dict[str, Set[str]]] = None
) -> List[StudentGroup]:
    """
    Build one StudentGroup per (name, id), sorted by student name then id.

    Args:
        records: Consultation records of one teacher
        selections: Optional student_key -> selected record ids

    Returns:
        Student groups; selected ids not belonging to the student are dropped
    """
    selections = selections or {}
    groups: Dict[str, StudentGroup] = {}

    for record in records:
        key = build_student_key(record.student_name, record.student_id)
        if key not in groups:
            groups[key] = StudentGroup(
                student_name=record.student_name.strip(),
                student_id=(record.student_id or "").strip(),
            )
        groups[key].consultations.append(record)

    for key, group in groups.items():
        own_ids = {c.id for c in group.consultations if c.id}
        group.selected_ids = set(selections.get(key, set())) & own_ids

    return sorted(groups.values(), key=lambda g: (g.student_name, g.student_id))
