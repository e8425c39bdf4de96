"""Default premium feature catalog.

Limits are per 30-day usage window. ``-1`` means unlimited.
"""

DEFAULT_FEATURE_CATALOG = [
    {
        "name": "AI Document Generator",
        "description": "Generate professional visa documents with AI assistance",
        "category": "ai",
        "free_access": True, "premium_access": True, "professional_access": True,
        "free_limit": 1, "premium_limit": 10, "professional_limit": -1,
    },
    {
        "name": "University AI Advisor",
        "description": "AI-powered university recommendations based on profile",
        "category": "advisor",
        "free_access": False, "premium_access": True, "professional_access": True,
        "free_limit": 0, "premium_limit": 5, "professional_limit": -1,
    },
    {
        "name": "Visa Pathway AI",
        "description": "AI analysis of optimal visa pathways to the desired country",
        "category": "visa-engines",
        "free_access": False, "premium_access": True, "professional_access": True,
        "free_limit": 0, "premium_limit": 3, "professional_limit": -1,
    },
    {
        "name": "Program Matching Engine",
        "description": "Program recommendations based on GPA, test scores and profile",
        "category": "advisor",
        "free_access": True, "premium_access": True, "professional_access": True,
        "free_limit": 2, "premium_limit": 20, "professional_limit": -1,
    },
    {
        "name": "Document Templates Library",
        "description": "Professional document templates for applications",
        "category": "documents",
        "free_access": True, "premium_access": True, "professional_access": True,
        "free_limit": 5, "premium_limit": 50, "professional_limit": -1,
    },
    {
        "name": "Essay Review & Feedback",
        "description": "Professional review of personal statements and essays",
        "category": "documents",
        "free_access": False, "premium_access": True, "professional_access": True,
        "free_limit": 0, "premium_limit": 4, "professional_limit": -1,
    },
    {
        "name": "Priority Support",
        "description": "Priority email and chat support from visa experts",
        "category": "support",
        "free_access": False, "premium_access": True, "professional_access": True,
        "free_limit": 0, "premium_limit": -1, "professional_limit": -1,
    },
    {
        "name": "Personal Application Coach",
        "description": "One-on-one coaching calls with immigration experts",
        "category": "support",
        "free_access": False, "premium_access": False, "professional_access": True,
        "free_limit": 0, "premium_limit": 0, "professional_limit": 12,
    },
    {
        "name": "Interview Preparation Module",
        "description": "AI mock interviews with feedback for visa and university interviews",
        "category": "advisor",
        "free_access": False, "premium_access": True, "professional_access": True,
        "free_limit": 0, "premium_limit": 6, "professional_limit": -1,
    },
    {
        "name": "Work Permit Advisor",
        "description": "Work permit options and post-graduation job prospects",
        "category": "visa-engines",
        "free_access": False, "premium_access": True, "professional_access": True,
        "free_limit": 0, "premium_limit": 2, "professional_limit": -1,
    },
    {
        "name": "Financial Planning Tool",
        "description": "Costs, scholarships and financing options for study abroad",
        "category": "other",
        "free_access": True, "premium_access": True, "professional_access": True,
        "free_limit": 1, "premium_limit": -1, "professional_limit": -1,
    },
    {
        "name": "Multiple Applications Tracking",
        "description": "Track visa and university applications in one dashboard",
        "category": "documents",
        "free_access": True, "premium_access": True, "professional_access": True,
        "free_limit": 3, "premium_limit": 15, "professional_limit": -1,
    },
    {
        "name": "Visa Status Tracker",
        "description": "Visa application status tracking with notifications",
        "category": "visa-engines",
        "free_access": True, "premium_access": True, "professional_access": True,
        "free_limit": 1, "premium_limit": 5, "professional_limit": -1,
    },
    {
        "name": "Country Comparison Tool",
        "description": "Compare countries on cost, visa, work and living",
        "category": "advisor",
        "free_access": True, "premium_access": True, "professional_access": True,
        "free_limit": 2, "premium_limit": -1, "professional_limit": -1,
    },
    {
        "name": "Deadline Reminder System",
        "description": "Reminders for application deadlines, visa expiry and payment dates",
        "category": "other",
        "free_access": True, "premium_access": True, "professional_access": True,
        "free_limit": 3, "premium_limit": -1, "professional_limit": -1,
    },
    {
        "name": "Scholarship Finder AI",
        "description": "Scholarships matching your profile and programs",
        "category": "ai",
        "free_access": False, "premium_access": True, "professional_access": True,
        "free_limit": 0, "premium_limit": 1, "professional_limit": -1,
    },
    {
        "name": "Document Quality Checker",
        "description": "Checks documents for errors, compliance and completeness",
        "category": "documents",
        "free_access": False, "premium_access": True, "professional_access": True,
        "free_limit": 0, "premium_limit": 10, "professional_limit": -1,
    },
    {
        "name": "Custom Profile Building",
        "description": "Detailed profile questionnaire to improve university and visa matching",
        "category": "advisor",
        "free_access": False, "premium_access": True, "professional_access": True,
        "free_limit": 0, "premium_limit": 1, "professional_limit": -1,
    },
    {
        "name": "Email Support",
        "description": "Standard email support from the support team",
        "category": "support",
        "free_access": True, "premium_access": True, "professional_access": True,
        "free_limit": -1, "premium_limit": -1, "professional_limit": -1,
    },
    {
        "name": "Video Call Consultation",
        "description": "15-minute video consultation with visa and education advisors",
        "category": "support",
        "free_access": False, "premium_access": True, "professional_access": True,
        "free_limit": 0, "premium_limit": 2, "professional_limit": 12,
    },
]
