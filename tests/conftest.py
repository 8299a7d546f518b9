"""
Shared fixtures: sample clinical notes
"""

import pytest


SOAP_NOTE = (
    "Subjective: Patient reports improved mood and better sleep over the past two weeks.\n"
    "Objective: Alert and oriented, affect euthymic, speech normal rate.\n"
    "Assessment: Major depressive disorder, improving on current regimen.\n"
    "Plan: Continue sertraline 100mg daily, follow up in four weeks."
)

NARRATIVE_NOTE = (
    "Identifying Information: 34-year-old female referred for transfer of care.\n"
    "History of Present Illness: Reports worsening anxiety over six months with panic episodes.\n"
    "Current Medications: Escitalopram 10mg daily, hydroxyzine 25mg as needed.\n"
    "Diagnosis: Generalized anxiety disorder.\n"
    "Mental Status Exam: Alert, cooperative, anxious affect, linear thought process.\n"
    "Safety Plan: Patient agrees to contact crisis line if symptoms escalate."
)

EPIC_NOTE = (
    "Chief Complaint: @CC@ follow-up for depression\n"
    "HPI: Patient seen for .psychfu visit, mood {Mood:304001} today.\n"
    "Plan: Continue current regimen ***"
)

UNSTRUCTURED_NOTE = (
    "Patient reports low mood and states she feels tired most days.\n"
    "\n"
    "Will continue sertraline and increase the dose, follow up in four weeks."
)


@pytest.fixture
def soap_note():
    return SOAP_NOTE


@pytest.fixture
def narrative_note():
    return NARRATIVE_NOTE


@pytest.fixture
def epic_note():
    return EPIC_NOTE


@pytest.fixture
def unstructured_note():
    return UNSTRUCTURED_NOTE
