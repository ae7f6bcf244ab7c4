"""
Central constants for SafeWorkCA: SB 553 vocabularies, industry hazard defaults, plan tiers.
"""
from __future__ import annotations

INDUSTRIES = {
    "retail": "Retail",
    "restaurant": "Restaurant / Food Service",
    "construction": "Construction",
    "professional_services": "Professional Services",
    "manufacturing": "Manufacturing",
    "other": "Other",
}

WORKPLACE_TYPES = {
    "office": "Office",
    "retail_store": "Retail Store",
    "warehouse": "Warehouse",
    "outdoor": "Outdoor / Field",
    "multiple_locations": "Multiple Locations",
}

VIOLENCE_TYPES = {
    "type1": "Type 1 - Criminal Intent (no legitimate business)",
    "type2": "Type 2 - Customer/Client",
    "type3": "Type 3 - Worker-on-Worker",
    "type4": "Type 4 - Personal Relationship",
}

INCIDENT_TYPES = {
    "physical_attack_no_weapon": "Physical attack without weapon (biting, choking, kicking, etc.)",
    "attack_with_weapon": "Attack with weapon or object",
    "threat_physical_force": "Threat of physical force",
    "threat_weapon": "Threat of weapon use",
    "sexual_assault": "Sexual assault",
    "sexual_threat": "Sexual threat or unwanted contact",
    "animal_attack": "Animal attack",
    "other": "Other",
}

PERPETRATOR_TYPES = {
    "client_customer": "Client or Customer",
    "family_friend_of_client": "Family/Friend of Client",
    "stranger_criminal_intent": "Stranger with Criminal Intent",
    "coworker": "Coworker",
    "supervisor_manager": "Supervisor or Manager",
    "partner_spouse": "Partner or Spouse",
    "parent_relative": "Parent or Relative",
    "other": "Other",
}

INCIDENT_LOCATION_TYPES = ("workplace", "parking_lot", "outside_workplace", "other")

ALERT_METHODS = {
    "alarm": "Alarm System",
    "pa": "PA Announcement",
    "text": "Text Message",
    "email": "Email Alert",
    "phone": "Phone Call",
    "radio": "Two-Way Radio",
}

RISK_LEVELS = ("low", "medium", "high")

TRAINING_TOPICS = [
    "The employer's WVPP and how to obtain a copy",
    "How to participate in WVPP development and implementation",
    "How to report incidents without fear of reprisal",
    "Workplace violence hazards specific to job duties",
    "How to seek assistance to prevent or respond to violence",
    "Strategies to avoid physical harm",
    "The violent incident log",
    "How to obtain copies of records",
    "Emergency response procedures",
    "De-escalation techniques",
]

INDUSTRY_HAZARDS: dict[str, list[dict]] = {
    "retail": [
        {"type": "type1", "description": "Robbery or theft attempt", "risk_level": "high",
         "controls": ["Cash handling procedures", "Limited cash on premises", "Surveillance cameras", "Panic buttons"]},
        {"type": "type2", "description": "Angry or aggressive customers", "risk_level": "medium",
         "controls": ["De-escalation training", "Manager intervention protocols", "Security presence"]},
    ],
    "restaurant": [
        {"type": "type1", "description": "Robbery attempt", "risk_level": "medium",
         "controls": ["Cash handling procedures", "Surveillance", "Well-lit premises"]},
        {"type": "type2", "description": "Intoxicated or difficult patrons", "risk_level": "medium",
         "controls": ["Alcohol service policies", "De-escalation training", "Security for evening hours"]},
        {"type": "type3", "description": "Kitchen staff conflicts", "risk_level": "low",
         "controls": ["Conflict resolution procedures", "Supervisor training", "Clear communication protocols"]},
    ],
    "construction": [
        {"type": "type1", "description": "Site intrusion or theft", "risk_level": "medium",
         "controls": ["Site security", "Perimeter fencing", "Tool lockup procedures"]},
        {"type": "type3", "description": "Crew conflicts", "risk_level": "medium",
         "controls": ["Clear supervision", "Communication protocols", "Conflict resolution training"]},
    ],
    "professional_services": [
        {"type": "type2", "description": "Upset clients or visitors", "risk_level": "low",
         "controls": ["Visitor sign-in procedures", "Reception area security", "Meeting room protocols"]},
        {"type": "type3", "description": "Workplace conflicts", "risk_level": "low",
         "controls": ["HR policies", "Conflict resolution procedures", "Manager training"]},
        {"type": "type4", "description": "Domestic situations affecting workplace", "risk_level": "low",
         "controls": ["Security awareness", "Confidential reporting", "Support resources"]},
    ],
    "manufacturing": [
        {"type": "type1", "description": "Unauthorized access or theft", "risk_level": "medium",
         "controls": ["Access control systems", "Security cameras", "Visitor procedures"]},
        {"type": "type3", "description": "Worker conflicts", "risk_level": "medium",
         "controls": ["Supervisor presence", "Clear reporting procedures", "Employee assistance program"]},
    ],
    "other": [
        {"type": "type2", "description": "Interactions with public", "risk_level": "medium",
         "controls": ["De-escalation training", "Security protocols", "Clear reporting procedures"]},
        {"type": "type3", "description": "Workplace conflicts", "risk_level": "low",
         "controls": ["HR policies", "Management training", "Open communication"]},
    ],
}

SUBSCRIPTION_PLANS = {
    "free": {"name": "Free Trial", "price": 0, "features": ["14-day trial", "All Professional features"]},
    "starter": {
        "name": "Starter",
        "price": 29,
        "features": ["1 location", "Up to 25 employees", "WVPP generation", "Incident log", "Email reminders"],
    },
    "professional": {
        "name": "Professional",
        "price": 79,
        "features": ["Up to 3 locations", "Up to 100 employees", "Training modules", "Compliance dashboard", "Priority support"],
    },
    "enterprise": {
        "name": "Enterprise",
        "price": 199,
        "features": ["Unlimited locations", "Unlimited employees", "API access", "Custom branding", "Dedicated support"],
    },
}

# Retention periods (years) under LC 6401.9(f)
DEFAULT_RECORDKEEPING = {
    "hazard_records_years": 5,
    "training_records_years": 1,
    "incident_log_years": 5,
}

DEFAULT_ORG_SETTINGS = {
    "training_reminder_days": [30, 7, 1],
    "auto_assign_training": True,
    "require_quiz_pass": True,
    "quiz_passing_score": 70,
    "timezone": "America/Los_Angeles",
}
