"""Template surveys used when AI survey generation is unavailable."""

import re

# Checked in order; the first match wins
CATEGORY_PATTERNS = (
    ("restaurant", re.compile(r"restaurant|food|dining|menu|chef|service")),
    ("event_feedback", re.compile(r"event|conference|workshop|meeting|webinar")),
    ("training_evaluation", re.compile(r"training|course|learning|education|instructor")),
    ("market_research", re.compile(r"market|research|brand|competition|target audience")),
    ("customer_satisfaction", re.compile(r"customer|satisfaction|service|support")),
    ("employee_engagement", re.compile(r"employee|workplace|team|engagement|culture")),
    ("product_feedback", re.compile(r"product|feature|app|software|tool")),
)


def _scale(text, required=False):
    return {"question_text": text, "question_type": "scale", "required": required}


def _text(text, required=False):
    return {"question_text": text, "question_type": "text", "required": required}


SURVEY_TEMPLATES = {
    "customer_satisfaction": {
        "title": "Customer Satisfaction Survey",
        "description": "Help us improve our service by sharing your feedback",
        "questions": [
            _scale("How would you rate your overall satisfaction? (1 = Very Unsatisfied, 10 = Very Satisfied)", True),
            _text("What did you like most about your experience?"),
            _scale("How likely are you to recommend us to others? (1 = Not at all likely, 10 = Extremely likely)", True),
            _text("What could we improve?"),
            _scale("How easy was it to get help when you needed it? (1 = Very Difficult, 10 = Very Easy)"),
        ],
    },
    "employee_engagement": {
        "title": "Employee Engagement Survey",
        "description": "Share your thoughts about your workplace experience",
        "questions": [
            _scale("How satisfied are you with your current role? (1 = Very Unsatisfied, 10 = Very Satisfied)", True),
            _text("What motivates you most at work?"),
            _scale("How would you rate work-life balance? (1 = Poor, 10 = Excellent)", True),
            _scale(
                "How likely are you to recommend this company as a place to work? "
                "(1 = Not at all likely, 10 = Extremely likely)"
            ),
            _text("What could leadership do to better support the team?"),
        ],
    },
    "product_feedback": {
        "title": "Product Feedback Survey",
        "description": "Help us understand how to improve our product",
        "questions": [
            _scale("How would you rate the product overall? (1 = Poor, 10 = Excellent)", True),
            _text("What features do you use most?"),
            _text("What new features would you like to see?"),
            _scale("How easy is the product to use? (1 = Very Difficult, 10 = Very Easy)"),
            _text("What's the biggest challenge you face when using this product?"),
        ],
    },
    "restaurant": {
        "title": "Restaurant Feedback Survey",
        "description": "Help us improve your dining experience",
        "questions": [
            _scale("How would you rate the food quality? (1 = Poor, 10 = Excellent)", True),
            _scale("How would you rate the service? (1 = Poor, 10 = Excellent)", True),
            _scale("How would you rate the atmosphere? (1 = Poor, 10 = Excellent)"),
            _text("What was your favorite dish?"),
            _scale("Would you recommend this restaurant to friends? (1 = Definitely not, 10 = Definitely yes)", True),
            _text("Any suggestions for improvement?"),
        ],
    },
    "event_feedback": {
        "title": "Event Feedback Survey",
        "description": "Help us improve future events with your feedback",
        "questions": [
            _scale("How would you rate the event overall? (1 = Poor, 10 = Excellent)", True),
            _scale("How useful was the content? (1 = Not useful, 10 = Very useful)", True),
            _text("What was the most valuable part of the event?"),
            _scale("How would you rate the organization? (1 = Poor, 10 = Excellent)"),
            _text("What topics would you like to see covered in future events?"),
        ],
    },
    "training_evaluation": {
        "title": "Training Evaluation Survey",
        "description": "Help us improve our training programs",
        "questions": [
            _scale("How would you rate the training content? (1 = Poor, 10 = Excellent)", True),
            _scale("How effective was the instructor? (1 = Poor, 10 = Excellent)", True),
            _scale("How likely are you to apply what you learned? (1 = Not likely, 10 = Very likely)", True),
            _text("What was most helpful about this training?"),
            _text("What could be improved?"),
        ],
    },
    "market_research": {
        "title": "Market Research Survey",
        "description": "Help us understand your preferences and needs",
        "questions": [
            _scale("How familiar are you with our brand? (1 = Not familiar, 10 = Very familiar)", True),
            _text("What factors are most important when choosing this type of product/service?"),
            _scale("How likely are you to try our product/service? (1 = Not likely, 10 = Very likely)", True),
            _text("What brands do you currently use for this type of product/service?"),
            _text("What would make you switch to a new brand?"),
        ],
    },
    "generic": {
        # Title is derived from the prompt
        "title": None,
        "description": "Please share your thoughts and feedback",
        "questions": [
            _scale("Please rate your overall experience (1 = Poor, 10 = Excellent)", True),
            _text("What worked well for you?"),
            _text("What could be improved?"),
            _text("Any additional comments or suggestions?"),
        ],
    },
}
