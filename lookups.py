"""
Lookup tables behind the submission and filter dropdowns, and the config
payload built from them.
"""

from typing import Dict, List

from logging_utils import get_logger
from schemas import Language, Level, MaterialCategory, Stream, Subject

logger = get_logger("config")

LOOKUP_COLLECTIONS = ["levels", "streams", "languages", "material_categories", "subjects"]

# O/L has no streams; its subjects hang off this internal stream
INTERNAL_STREAM = "General"

SESSION_TYPES = ["Live", "Recording"]

_AL_SUBJECTS = {
    "Science": ["Physics", "Chemistry", "Biology", "Combined Mathematics", "ICT"],
    "Arts": ["Sinhala", "Tamil", "Geography", "History", "Political Science", "Economics", "ICT"],
    "Commerce": ["Accounting", "Business Studies", "Economics", "ICT"],
    "Technology": ["Engineering Technology", "Bio Systems Technology", "Science for Technology", "ICT"],
}
_OL_SUBJECTS = [
    "Mathematics", "Science", "English", "Sinhala", "Tamil", "History", "Buddhism",
    "Geography", "Commerce", "ICT",
]


def default_lookups() -> Dict[str, List[dict]]:
    levels = [
        Level(code="AL", name="Advanced Level", display_order=1),
        Level(code="OL", name="Ordinary Level", display_order=2),
    ]
    streams = [
        Stream(code=code, name=code, level_code="AL", display_order=i)
        for i, code in enumerate(_AL_SUBJECTS, start=1)
    ]
    streams.append(Stream(code=INTERNAL_STREAM, name=INTERNAL_STREAM, level_code="OL", display_order=len(streams) + 1))
    languages = [
        Language(code=code, name=code, display_order=i)
        for i, code in enumerate(["Sinhala", "Tamil", "English"], start=1)
    ]
    categories = [
        MaterialCategory(code=code, name=code, display_order=i)
        for i, code in enumerate(["Past Paper", "Note", "Textbook", "Model Paper"], start=1)
    ]

    subjects = []
    order = 1
    for stream_code, names in _AL_SUBJECTS.items():
        for name in names:
            subjects.append(Subject(code=name, name=name, stream_code=stream_code, level_code="AL", display_order=order))
            order += 1
    for name in _OL_SUBJECTS:
        subjects.append(Subject(code=name, name=name, stream_code=INTERNAL_STREAM, level_code="OL", display_order=order))
        order += 1

    return {
        "levels": [m.model_dump() for m in levels],
        "streams": [m.model_dump() for m in streams],
        "languages": [m.model_dump() for m in languages],
        "material_categories": [m.model_dump() for m in categories],
        "subjects": [m.model_dump() for m in subjects],
    }


def seed_lookups(db) -> Dict[str, int]:
    """Insert default rows into each empty lookup collection. Returns rows inserted per collection."""
    created = {}
    for name, rows in default_lookups().items():
        if db[name].count_documents({}) > 0:
            created[name] = 0
            continue
        db[name].insert_many([dict(row) for row in rows])
        created[name] = len(rows)
        logger.info("Seeded %d rows into %s", len(rows), name)
    return created


def fetch_lookups(db) -> Dict[str, List[dict]]:
    return {
        name: list(db[name].find({"is_active": True}, {"_id": 0}).sort("display_order", 1))
        for name in LOOKUP_COLLECTIONS
    }


def _unique(values) -> List[str]:
    return list(dict.fromkeys(values))


def build_config(levels, streams, languages, categories, subjects) -> dict:
    """Reshape the active lookup rows into the maps the forms and filters use."""
    level_codes = [lvl["code"] for lvl in levels]

    streams_by_level = {
        code: [s["code"] for s in streams if s.get("level_code") == code and s["code"] != INTERNAL_STREAM]
        for code in level_codes
    }

    subjects_by_stream = {
        stream_code: _unique(s["code"] for s in subjects if s.get("stream_code") == stream_code)
        for stream_code in (s["code"] for s in streams)
    }

    subjects_by_level = {
        code: _unique(s["code"] for s in subjects if s.get("level_code") == code)
        for code in level_codes
    }

    subject_streams: Dict[str, Dict[str, List[str]]] = {}
    for code in level_codes:
        mapping: Dict[str, List[str]] = {}
        for subj in subjects:
            if subj.get("level_code") != code:
                continue
            stream_list = mapping.setdefault(subj["code"], [])
            if subj.get("stream_code") not in stream_list:
                stream_list.append(subj.get("stream_code"))
        subject_streams[code] = mapping

    return {
        "levels": level_codes,
        "streams": streams_by_level,
        "languages": [lang["code"] for lang in languages],
        "materialCategories": [c["code"] for c in categories],
        "subjects": subjects_by_stream,
        "subjectsByLevel": subjects_by_level,
        "subjectStreams": subject_streams,
        "sessionTypes": list(SESSION_TYPES),
    }
