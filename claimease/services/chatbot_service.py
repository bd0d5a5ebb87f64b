# claimease/services/chatbot_service.py
"""
Insurance support chatbot.

Answers come from the configured LLM when one is available and from a
keyword table otherwise. Either way the reply carries follow-up
suggestions and, when the message asks for it, the caller's own records.
"""

from typing import Optional, List, Dict, Any, Tuple

from claimease.core.config import settings
from claimease.core.constants import PaymentStatus
from claimease.core.exceptions import ValidationFailedError
from claimease.core.logging import get_logger
from claimease.models.schemas import ChatResponse
from claimease.models.user import User
from claimease.storage.claim_store import get_claim_store
from claimease.storage.payment_store import get_payment_store
from claimease.storage.policy_store import get_policy_store

logger = get_logger(__name__)

SYSTEM_PROMPT = """You are an intelligent insurance assistant for the ClaimEase Insurance Management System.
Help customers with insurance-related queries ONLY.

Answer questions about:
- Insurance policies (Life, Health, Auto, Home, Travel, Business)
- The claims process and claim status
- Premium payments and billing
- Coverage details and insurance terms
- ClaimEase platform features and navigation

For anything else, politely decline: "I'm specialized in insurance assistance. I can help you with
insurance policies, claims, payments, or coverage details. How can I assist you with your insurance needs?"

Keep responses professional and concise (2-4 sentences). When uncertain, suggest contacting
human support at support@insurance.com or 1-800-INSURANCE. Claims are usually settled in 7-30 days."""

# Checked in order; the first category with a matching keyword wins.
KEYWORD_RESPONSES: List[Tuple[str, List[str], str]] = [
    ("greetings", ["hello", "hi", "hey", "good morning", "good afternoon", "good evening"],
     "Hello! Welcome to ClaimEase. How can I help you with your insurance needs today?"),
    ("policy", ["policy", "policies", "coverage", "premium", "insurance plan"],
     "We offer Life, Health, Auto, Home, Travel and Business insurance. "
     "You can view your policies and their coverage details from your dashboard."),
    ("claim", ["claim", "file claim", "submit claim", "claim status"],
     "To file a claim, go to the Claims section, choose your policy and upload supporting documents. "
     "You can track the status of every claim from your dashboard."),
    ("payment", ["payment", "pay", "due", "premium payment", "bill"],
     "You can pay premiums online by card, UPI, net banking or bank transfer. "
     "Upcoming and pending payments are listed in the Payments section."),
    ("help", ["help", "support", "assist"],
     "I can help you with policies, claims, payments and general insurance questions. What would you like to know?"),
    ("contact", ["contact", "phone", "email", "address", "reach"],
     "You can reach our support team at support@insurance.com or call 1-800-INSURANCE, available 24/7."),
    ("life", ["life insurance", "term insurance", "life cover"],
     "Life insurance protects your family's financial future. Term plans offer high cover at affordable premiums."),
    ("health", ["health insurance", "medical", "hospital", "mediclaim"],
     "Health insurance covers hospitalization and medical expenses. Individual and family plans are available."),
    ("auto", ["auto insurance", "car insurance", "vehicle", "motor"],
     "Auto insurance covers damage to your vehicle and third-party liability, with multi-car discounts."),
    ("thankyou", ["thank", "thanks", "appreciate"],
     "You're welcome! Is there anything else I can help you with?"),
    ("bye", ["bye", "goodbye", "see you"],
     "Goodbye! Feel free to come back whenever you have insurance questions."),
]

UNKNOWN_RESPONSE = (
    "I'm not sure I understand. Could you please rephrase your question? "
    "You can ask me about policies, claims, payments, or general insurance information."
)

MATCH_CONFIDENCE = 0.8
UNKNOWN_CONFIDENCE = 0.3
LLM_CONFIDENCE = 0.9

QUICK_SUGGESTIONS = {
    "greetings": ["Show my policies", "How do I file a claim?", "When is my next payment due?"],
    "policy": ["Show my policies", "What does my policy cover?", "How is the premium calculated?"],
    "claim": ["Check my claim status", "What documents are needed?", "How long does settlement take?"],
    "payment": ["When is my next payment due?", "What payment methods are available?", "View payment history"],
    "unknown": ["What insurance policies do you offer?", "How can I file a claim?", "How to contact support?"],
}

SUGGESTIONS = [
    "What insurance policies do you offer?",
    "How can I file a claim?",
    "Show my policy details",
    "When is my next payment due?",
    "Check my claim status",
    "How to contact support?",
]

FAQS = [
    {
        "question": "What types of insurance do you offer?",
        "answer": "We offer Life, Health, Auto, Home, Travel and Business insurance policies.",
    },
    {
        "question": "How do I file a claim?",
        "answer": "Open the Claims section, select the policy, describe the incident and upload "
                  "at least one supporting document.",
    },
    {
        "question": "What payment methods are accepted?",
        "answer": "Credit and debit cards, UPI, net banking, bank transfer, cheque and cash.",
    },
    {
        "question": "How long does claim settlement take?",
        "answer": "Most claims are settled within 7-30 days once all documents are received.",
    },
    {
        "question": "Can I cancel my policy?",
        "answer": "Yes. Contact your agent or support to cancel; refunds depend on the policy terms.",
    },
    {
        "question": "How is my premium calculated?",
        "answer": "Premiums depend on the policy type, coverage amount, duration, payment frequency "
                  "and your risk category.",
    },
]


def match_keywords(message: str) -> Tuple[str, str, float]:
    """Return ``(category, response, confidence)`` for a message."""
    text = message.lower()
    for category, keywords, response in KEYWORD_RESPONSES:
        if any(keyword in text for keyword in keywords):
            return category, response, MATCH_CONFIDENCE
    return "unknown", UNKNOWN_RESPONSE, UNKNOWN_CONFIDENCE


class ChatbotService:
    """Service for chatbot conversations."""

    def __init__(self):
        self.policies = get_policy_store()
        self.claims = get_claim_store()
        self.payments = get_payment_store()

    def suggestions(self) -> List[str]:
        return list(SUGGESTIONS)

    def faqs(self) -> List[Dict[str, str]]:
        return [dict(faq) for faq in FAQS]

    async def chat(self, user: User, message: Optional[str]) -> Dict[str, Any]:
        message = (message or "").strip()
        if not message:
            raise ValidationFailedError.single("message", "Please provide a message")

        category, response, confidence = match_keywords(message)
        source = "rules"

        if settings.is_llm_configured:
            answer = await self._ask_llm(user, message)
            if answer:
                response, confidence, source = answer, LLM_CONFIDENCE, "llm"

        reply = ChatResponse(
            response=response,
            category=category,
            confidence=confidence,
            suggestions=QUICK_SUGGESTIONS.get(category, QUICK_SUGGESTIONS["unknown"]),
            context_data=self.context_data(user, message),
            source=source,
        )
        logger.info("Chatbot reply", user_id=user.user_id, category=category, source=source)
        return reply.model_dump()

    async def _ask_llm(self, user: User, message: str) -> Optional[str]:
        """LLM answer, or None so the keyword reply stands."""
        from claimease.ai.llm import get_llm_service

        prompt = f"{self._user_context(user)}\nUSER QUESTION: {message}"
        try:
            answer = await get_llm_service().invoke(prompt, system_prompt=SYSTEM_PROMPT)
        except Exception as e:
            logger.warning(f"Chatbot LLM unavailable, using keyword replies: {e}", user_id=user.user_id)
            return None
        return answer.strip() or None

    def _user_context(self, user: User) -> str:
        policies = [p for p in self.policies.get_by_customer(user.user_id) if p.is_active]
        claims = self.claims.get_by_customer(user.user_id)
        lines = [f"User Name: {user.full_name}"]
        if policies:
            lines.append(f"User has {len(policies)} active policies.")
        if claims:
            lines.append(f"User has {len(claims)} claims.")
        return "CONTEXT:\n" + "\n".join(lines) + "\n"

    def context_data(self, user: User, message: str) -> Optional[Dict[str, Any]]:
        """The caller's own records when the message asks for them."""
        text = message.lower()

        if "my polic" in text or "show polic" in text:
            policies = self.policies.get_by_customer(user.user_id)[:5]
            return {
                "type": "policies",
                "message": "Here are your policies:" if policies else "You don't have any policies yet.",
                "data": [
                    {
                        "policy_id": p.policy_id,
                        "policy_number": p.policy_number,
                        "policy_type": p.policy_type,
                        "status": p.status,
                        "coverage_amount": p.coverage_amount,
                        "end_date": p.end_date.isoformat(),
                    }
                    for p in policies
                ],
            }

        if "claim" in text and "status" in text:
            claims = sorted(self.claims.get_by_customer(user.user_id),
                            key=lambda c: c.created_at, reverse=True)[:3]
            return {
                "type": "claims",
                "message": "Here are your recent claims:" if claims else "You haven't filed any claims yet.",
                "data": [
                    {
                        "claim_id": c.claim_id,
                        "claim_number": c.claim_number,
                        "status": c.status,
                        "claim_amount": c.claim_amount,
                    }
                    for c in claims
                ],
            }

        if "payment" in text or "due" in text:
            open_statuses = PaymentStatus.open_statuses()
            payments = [p for p in self.payments.get_by_customer(user.user_id) if p.status in open_statuses]
            payments = sorted(payments, key=lambda p: p.due_date or p.created_at)[:3]
            return {
                "type": "payments",
                "message": "Here are your pending payments:" if payments else "You have no pending payments.",
                "data": [
                    {
                        "payment_id": p.payment_id,
                        "amount": p.amount,
                        "currency": p.currency,
                        "status": p.status,
                        "due_date": p.due_date.isoformat() if p.due_date else None,
                    }
                    for p in payments
                ],
            }

        return None
