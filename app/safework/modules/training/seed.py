"""
Default SB 553 training catalogue: six sequential modules with five questions each.

``seed_training_catalogue`` is idempotent: modules are matched on ``module_key`` and
existing rows (and their questions) are left untouched.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

MODULES: list[dict] = [
    {
        "module_key": "wvpp-overview-v1",
        "title": "Understanding Your WVPP",
        "description": "Learn about your employer's Workplace Violence Prevention Plan, its purpose under "
        "California SB 553, and your role in maintaining a safe workplace.",
        "order": 1,
        "video_duration_minutes": 8,
        "category": "wvpp_overview",
    },
    {
        "module_key": "reporting-procedures-v1",
        "title": "Reporting Workplace Violence",
        "description": "Understand how to report workplace violence incidents, threats, and concerns without fear "
        "of reprisal, including your legal protections under California law.",
        "order": 2,
        "video_duration_minutes": 6,
        "category": "reporting_procedures",
    },
    {
        "module_key": "hazard-recognition-v1",
        "title": "Recognizing Hazards",
        "description": "Identify workplace violence hazards specific to your job and environment, including warning "
        "signs of potential violence and environmental risk factors.",
        "order": 3,
        "video_duration_minutes": 10,
        "category": "hazard_recognition",
    },
    {
        "module_key": "avoidance-strategies-v1",
        "title": "Strategies to Avoid Harm",
        "description": "Learn practical strategies and de-escalation techniques to avoid physical harm during "
        "workplace violence situations.",
        "order": 4,
        "video_duration_minutes": 8,
        "category": "avoidance_strategies",
    },
    {
        "module_key": "incident-log-v1",
        "title": "The Violent Incident Log",
        "description": "Understand the violent incident log required by SB 553, what information is recorded, how it "
        "protects employee privacy, and how it is used to improve safety.",
        "order": 5,
        "video_duration_minutes": 5,
        "category": "incident_log",
    },
    {
        "module_key": "emergency-response-v1",
        "title": "Emergency Response",
        "description": "Learn your employer's emergency action procedures, evacuation routes, shelter-in-place "
        "protocols, and how to respond during an active threat situation.",
        "order": 6,
        "video_duration_minutes": 10,
        "category": "emergency_response",
    },
]

QUESTIONS: dict[str, list[dict]] = {
    "wvpp-overview-v1": [
        {
            "question_text": "What does WVPP stand for?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "Workplace Violence Prevention Plan", "is_correct": True},
                {"id": "b", "text": "Workplace Verification and Protection Policy", "is_correct": False},
                {"id": "c", "text": "Worker Violation Prevention Program", "is_correct": False},
                {"id": "d", "text": "Workplace Violence Preparedness Protocol", "is_correct": False},
            ],
            "explanation": "WVPP stands for Workplace Violence Prevention Plan, as required by California SB 553.",
            "order": 1,
            "points": 1,
        },
        {
            "question_text": "California SB 553 requires most employers to maintain a written WVPP.",
            "question_type": "true_false",
            "options": [
                {"id": "a", "text": "True", "is_correct": True},
                {"id": "b", "text": "False", "is_correct": False},
            ],
            "explanation": "SB 553 (Labor Code §6401.9) requires nearly all California employers to establish and maintain a written WVPP.",
            "order": 2,
            "points": 1,
        },
        {
            "question_text": "Which of the following is a key component of a WVPP?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "Employee dress code policy", "is_correct": False},
                {"id": "b", "text": "Procedures for responding to workplace violence emergencies", "is_correct": True},
                {"id": "c", "text": "Quarterly financial reporting", "is_correct": False},
                {"id": "d", "text": "Office supply requisition process", "is_correct": False},
            ],
            "explanation": "A WVPP must include procedures for responding to actual or potential workplace violence emergencies.",
            "order": 3,
            "points": 1,
        },
        {
            "question_text": "How often must the WVPP be reviewed at minimum?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "Every 5 years", "is_correct": False},
                {"id": "b", "text": "Every 2 years", "is_correct": False},
                {"id": "c", "text": "Annually", "is_correct": True},
                {"id": "d", "text": "Only when an incident occurs", "is_correct": False},
            ],
            "explanation": "The WVPP must be reviewed at least annually and after any workplace violence incident.",
            "order": 4,
            "points": 1,
        },
        {
            "question_text": "Employees have the right to participate in the development of the WVPP.",
            "question_type": "true_false",
            "options": [
                {"id": "a", "text": "True", "is_correct": True},
                {"id": "b", "text": "False", "is_correct": False},
            ],
            "explanation": "SB 553 requires employee involvement in the development and implementation of the WVPP.",
            "order": 5,
            "points": 1,
        },
    ],

    "reporting-procedures-v1": [
        {
            "question_text": "An employer can retaliate against an employee for reporting a workplace violence concern.",
            "question_type": "true_false",
            "options": [
                {"id": "a", "text": "True", "is_correct": False},
                {"id": "b", "text": "False", "is_correct": True},
            ],
            "explanation": "California law prohibits employers from retaliating against employees who report workplace violence incidents or concerns.",
            "order": 1,
            "points": 1,
        },
        {
            "question_text": "Which of the following should you report?",
            "question_type": "select_all",
            "options": [
                {"id": "a", "text": "A coworker threatening another employee", "is_correct": True},
                {"id": "b", "text": "A customer behaving aggressively", "is_correct": True},
                {"id": "c", "text": "A colleague arriving late to work", "is_correct": False},
                {"id": "d", "text": "Feeling unsafe due to a stranger loitering near the entrance", "is_correct": True},
            ],
            "explanation": "Threats, aggressive behavior, and situations that make you feel unsafe should all be reported. Tardiness is not a workplace violence concern.",
            "order": 2,
            "points": 1,
        },
        {
            "question_text": "What is the first thing you should do if you witness a workplace violence incident?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "Post about it on social media", "is_correct": False},
                {"id": "b", "text": "Ensure your own safety, then report the incident to your supervisor or designated contact", "is_correct": True},
                {"id": "c", "text": "Confront the perpetrator directly", "is_correct": False},
                {"id": "d", "text": "Ignore it and continue working", "is_correct": False},
            ],
            "explanation": "Your safety is the top priority. Once safe, immediately report the incident through your employer's designated reporting channels.",
            "order": 3,
            "points": 1,
        },
        {
            "question_text": "Reports of workplace violence should include as much detail as possible, such as date, time, location, and description of events.",
            "question_type": "true_false",
            "options": [
                {"id": "a", "text": "True", "is_correct": True},
                {"id": "b", "text": "False", "is_correct": False},
            ],
            "explanation": "Detailed reports help the employer investigate and take appropriate corrective action.",
            "order": 4,
            "points": 1,
        },
        {
            "question_text": "Which reporting method allows you to raise concerns without revealing your identity?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "Verbal report to your supervisor", "is_correct": False},
                {"id": "b", "text": "Anonymous reporting system", "is_correct": True},
                {"id": "c", "text": "Company-wide email", "is_correct": False},
                {"id": "d", "text": "Social media post", "is_correct": False},
            ],
            "explanation": "Anonymous reporting systems allow employees to report concerns without revealing their identity, providing protection from potential retaliation.",
            "order": 5,
            "points": 1,
        },
    ],

    "hazard-recognition-v1": [
        {
            "question_text": "Which of the following is an example of a workplace violence hazard?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "A well-lit parking lot", "is_correct": False},
                {"id": "b", "text": "Working alone in an isolated area late at night", "is_correct": True},
                {"id": "c", "text": "Having multiple employees at the front desk", "is_correct": False},
                {"id": "d", "text": "A functioning security camera system", "is_correct": False},
            ],
            "explanation": "Working alone in isolated areas, especially during late hours, is a recognized workplace violence hazard.",
            "order": 1,
            "points": 1,
        },
        {
            "question_text": "Which of the following are warning signs of potential workplace violence?",
            "question_type": "select_all",
            "options": [
                {"id": "a", "text": "Repeated verbal threats or intimidation", "is_correct": True},
                {"id": "b", "text": "Sudden, unexplained changes in behavior", "is_correct": True},
                {"id": "c", "text": "An employee asking for time off", "is_correct": False},
                {"id": "d", "text": "Expressions of intent to harm others", "is_correct": True},
            ],
            "explanation": "Verbal threats, significant behavior changes, and expressed intent to harm are all warning signs that should be taken seriously and reported.",
            "order": 2,
            "points": 1,
        },
        {
            "question_text": "Type 1 workplace violence involves a perpetrator who has no legitimate relationship with the business.",
            "question_type": "true_false",
            "options": [
                {"id": "a", "text": "True", "is_correct": True},
                {"id": "b", "text": "False", "is_correct": False},
            ],
            "explanation": "Type 1 (criminal intent) involves perpetrators with no legitimate business relationship - for example, a robbery.",
            "order": 3,
            "points": 1,
        },
        {
            "question_text": "A customer who becomes increasingly agitated and begins shouting at employees represents which type of workplace violence?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "Type 1 - Criminal Intent", "is_correct": False},
                {"id": "b", "text": "Type 2 - Customer/Client", "is_correct": True},
                {"id": "c", "text": "Type 3 - Worker-on-Worker", "is_correct": False},
                {"id": "d", "text": "Type 4 - Personal Relationship", "is_correct": False},
            ],
            "explanation": "Type 2 workplace violence involves customers, clients, patients, or others the business serves.",
            "order": 4,
            "points": 1,
        },
        {
            "question_text": "Hazard assessments should only be conducted once and never updated.",
            "question_type": "true_false",
            "options": [
                {"id": "a", "text": "True", "is_correct": False},
                {"id": "b", "text": "False", "is_correct": True},
            ],
            "explanation": "Hazard assessments must be reviewed regularly and updated whenever new hazards are identified or workplace conditions change.",
            "order": 5,
            "points": 1,
        },
    ],

    "avoidance-strategies-v1": [
        {
            "question_text": "What is the recommended first step when encountering an aggressive individual?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "Argue back to assert authority", "is_correct": False},
                {"id": "b", "text": "Remain calm and speak in a low, steady voice", "is_correct": True},
                {"id": "c", "text": "Physically restrain the person", "is_correct": False},
                {"id": "d", "text": "Turn your back and walk away quickly", "is_correct": False},
            ],
            "explanation": "Staying calm and using a low, steady voice are fundamental de-escalation techniques that can help prevent the situation from escalating.",
            "order": 1,
            "points": 1,
        },
        {
            "question_text": "Which of the following are effective de-escalation techniques?",
            "question_type": "select_all",
            "options": [
                {"id": "a", "text": "Active listening and acknowledging the person's feelings", "is_correct": True},
                {"id": "b", "text": "Maintaining a safe distance", "is_correct": True},
                {"id": "c", "text": "Making sudden movements to show urgency", "is_correct": False},
                {"id": "d", "text": "Offering options or choices to the agitated person", "is_correct": True},
            ],
            "explanation": "Active listening, maintaining safe distance, and offering choices are proven de-escalation techniques. Sudden movements can escalate the situation.",
            "order": 2,
            "points": 1,
        },
        {
            "question_text": "If a situation becomes physically dangerous and you cannot de-escalate, you should prioritize your personal safety and remove yourself from the area.",
            "question_type": "true_false",
            "options": [
                {"id": "a", "text": "True", "is_correct": True},
                {"id": "b", "text": "False", "is_correct": False},
            ],
            "explanation": "Personal safety always comes first. If de-escalation fails and there is physical danger, remove yourself and call for help.",
            "order": 3,
            "points": 1,
        },
        {
            "question_text": "When speaking with an agitated person, which body language should you use?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "Cross your arms and stare directly at them", "is_correct": False},
                {"id": "b", "text": "Point your finger to emphasize your point", "is_correct": False},
                {"id": "c", "text": "Maintain open, non-threatening posture with hands visible", "is_correct": True},
                {"id": "d", "text": "Stand as close as possible to show empathy", "is_correct": False},
            ],
            "explanation": "Open, non-threatening body language with visible hands signals that you are not a threat and helps create a calmer environment.",
            "order": 4,
            "points": 1,
        },
        {
            "question_text": "You should always try to resolve a violent situation on your own before calling for help.",
            "question_type": "true_false",
            "options": [
                {"id": "a", "text": "True", "is_correct": False},
                {"id": "b", "text": "False", "is_correct": True},
            ],
            "explanation": "Never try to handle a violent situation alone. Call for help immediately - contact your supervisor, security, or 911 as appropriate.",
            "order": 5,
            "points": 1,
        },
    ],

    "incident-log-v1": [
        {
            "question_text": "What is the purpose of the violent incident log?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "To discipline employees involved in incidents", "is_correct": False},
                {"id": "b", "text": "To record and track workplace violence incidents for prevention and compliance", "is_correct": True},
                {"id": "c", "text": "To report incidents to the media", "is_correct": False},
                {"id": "d", "text": "To determine employee performance ratings", "is_correct": False},
            ],
            "explanation": "The incident log records workplace violence incidents to identify patterns, improve prevention measures, and maintain compliance with SB 553.",
            "order": 1,
            "points": 1,
        },
        {
            "question_text": "The violent incident log must NOT contain personally identifiable information (PII) about employees.",
            "question_type": "true_false",
            "options": [
                {"id": "a", "text": "True", "is_correct": True},
                {"id": "b", "text": "False", "is_correct": False},
            ],
            "explanation": "Because employees have the right to access the incident log, it must not contain PII such as names, addresses, or social security numbers.",
            "order": 2,
            "points": 1,
        },
        {
            "question_text": "How long must violent incident log records be retained?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "1 year", "is_correct": False},
                {"id": "b", "text": "3 years", "is_correct": False},
                {"id": "c", "text": "5 years", "is_correct": True},
                {"id": "d", "text": "10 years", "is_correct": False},
            ],
            "explanation": "California Labor Code §6401.9 requires violent incident log records to be retained for a minimum of 5 years.",
            "order": 3,
            "points": 1,
        },
        {
            "question_text": "Which of the following must be recorded in the incident log?",
            "question_type": "select_all",
            "options": [
                {"id": "a", "text": "Date, time, and location of the incident", "is_correct": True},
                {"id": "b", "text": "Type of violence that occurred", "is_correct": True},
                {"id": "c", "text": "The employee's home address", "is_correct": False},
                {"id": "d", "text": "A detailed description of the incident", "is_correct": True},
            ],
            "explanation": "The incident log must include date/time/location, violence type, and description. Employee home addresses are PII and must NOT be included.",
            "order": 4,
            "points": 1,
        },
        {
            "question_text": "Employees have the right to request access to the violent incident log.",
            "question_type": "true_false",
            "options": [
                {"id": "a", "text": "True", "is_correct": True},
                {"id": "b", "text": "False", "is_correct": False},
            ],
            "explanation": "Employees have the right to access the incident log. Employers must provide access within 15 calendar days of a request.",
            "order": 5,
            "points": 1,
        },
    ],

    "emergency-response-v1": [
        {
            "question_text": "What should you do first in an emergency situation involving workplace violence?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "Document what is happening", "is_correct": False},
                {"id": "b", "text": "Assess the situation and ensure your own safety", "is_correct": True},
                {"id": "c", "text": "Confront the threat", "is_correct": False},
                {"id": "d", "text": "Continue working normally", "is_correct": False},
            ],
            "explanation": "In any emergency, your first priority is to assess the situation and ensure your personal safety before taking any other action.",
            "order": 1,
            "points": 1,
        },
        {
            "question_text": "The \"Run, Hide, Fight\" framework is a recognized approach for responding to an active threat. What is the recommended order of priority?",
            "question_type": "multiple_choice",
            "options": [
                {"id": "a", "text": "Fight first, then hide, then run", "is_correct": False},
                {"id": "b", "text": "Hide first, then run, then fight", "is_correct": False},
                {"id": "c", "text": "Run first, then hide, then fight as a last resort", "is_correct": True},
                {"id": "d", "text": "The order does not matter", "is_correct": False},
            ],
            "explanation": "The priority is to Run (evacuate if possible), Hide (find a secure location), and Fight only as an absolute last resort when your life is in imminent danger.",
            "order": 2,
            "points": 1,
        },
        {
            "question_text": "You should know the location of at least two emergency exits from your work area.",
            "question_type": "true_false",
            "options": [
                {"id": "a", "text": "True", "is_correct": True},
                {"id": "b", "text": "False", "is_correct": False},
            ],
            "explanation": "Knowing multiple exit routes is essential. If one exit is blocked during an emergency, you need to know alternative escape routes.",
            "order": 3,
            "points": 1,
        },
        {
            "question_text": "When calling 911 during a workplace violence emergency, which information should you provide?",
            "question_type": "select_all",
            "options": [
                {"id": "a", "text": "Your location and the nature of the emergency", "is_correct": True},
                {"id": "b", "text": "Number of people involved or injured", "is_correct": True},
                {"id": "c", "text": "Your employee performance review score", "is_correct": False},
                {"id": "d", "text": "Description of the threat or suspect if known", "is_correct": True},
            ],
            "explanation": "Provide location, nature of emergency, number of people involved/injured, and any description of the threat. Only share relevant emergency information.",
            "order": 4,
            "points": 1,
        },
        {
            "question_text": "During a shelter-in-place situation, you should lock or barricade doors, turn off lights, silence phones, and stay away from windows.",
            "question_type": "true_false",
            "options": [
                {"id": "a", "text": "True", "is_correct": True},
                {"id": "b", "text": "False", "is_correct": False},
            ],
            "explanation": "These are standard shelter-in-place procedures. The goal is to make your location appear unoccupied and to minimize your visibility.",
            "order": 5,
            "points": 1,
        },
    ],
}


def seed_training_catalogue(s: "Session") -> int:
    """Insert missing catalogue modules. Returns how many modules were created."""
    from app.safework.modules.training.models import TrainingModule, TrainingQuestion

    created = 0
    for entry in MODULES:
        existing = s.query(TrainingModule).filter(TrainingModule.module_key == entry["module_key"]).one_or_none()
        if existing:
            continue
        module = TrainingModule(
            type="video",
            is_required=True,
            has_quiz=True,
            passing_score=70,
            max_attempts=0,
            is_active=True,
            **entry,
        )
        for q in QUESTIONS.get(entry["module_key"], []):
            module.questions.append(TrainingQuestion(is_active=True, **q))
        s.add(module)
        created += 1
        logger.info("Seeded training module %s (%d questions)", entry["module_key"], len(module.questions))
    s.flush()
    return created
