"""System prompts and fixed upstream parameters for each proxy function."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FunctionSpec:
    """How a named proxy function talks to the gateway."""

    name: str
    system_prompt: str
    temperature: float | None = None
    max_tokens: int | None = None
    force_stream: bool = False


FINANCIAL_CHAT_PROMPT = """\
You are Theodore, the FlowPulse document and financial advisory assistant.
Answer with clear markdown: ## headings, **bold** key terms, bullet lists and
tables where they help. Reference UK regulation where relevant and add a
disclaimer when discussing specific investment products."""

BUSINESS_CHAT_PROMPT = """\
You are the FlowPulse business operations assistant. Help with reports,
workflows, CRM follow-ups and planning. Answer with clear markdown and keep
paragraphs short."""

_DEFAULT_ANALYST_PROMPT = """\
You are an expert financial analyst and investment advisor.
Provide detailed, accurate, and actionable insights."""

ANALYST_PROMPTS: dict[str, str] = {
    "company-qa": "You are a financial analyst answering detailed questions about companies.",
    "trends": "You are a market trends analyst. Give data-driven insight on sectors and patterns.",
    "research-summary": "You are a research analyst writing concise executive research summaries.",
    "qa-filings": "You are a financial document analyst specialised in filings and earnings calls.",
    "swot": "You are a strategic analyst producing SWOT analyses with bullet points per section.",
    "valuation": "You are a valuation analyst giving balanced commentary on valuation metrics.",
}

# How the analyst phrases the user turn when a company is named.
_ANALYST_USER_TEMPLATES: dict[str, str] = {
    "trends": "Analyze current trends for {company}: {query}",
    "research-summary": "Generate a comprehensive research summary for {company}",
    "qa-filings": "Regarding {company}'s filings and earnings: {query}",
    "swot": "Generate a comprehensive SWOT analysis for {company}",
    "valuation": "Provide valuation commentary for {company}",
}

FUNCTIONS: dict[str, FunctionSpec] = {
    "financial-chat": FunctionSpec(
        name="financial-chat",
        system_prompt=FINANCIAL_CHAT_PROMPT,
        temperature=0.7,
        max_tokens=4000,
    ),
    "business-chat": FunctionSpec(
        name="business-chat",
        system_prompt=BUSINESS_CHAT_PROMPT,
        temperature=0.7,
        max_tokens=4000,
    ),
    "ai-analyst": FunctionSpec(
        name="ai-analyst",
        system_prompt=_DEFAULT_ANALYST_PROMPT,
        force_stream=True,
    ),
}


def build_analyst_prompt(
    query: str,
    analysis_type: str | None,
    company: str | None = None,
) -> tuple[str, str]:
    """Return ``(system_prompt, user_prompt)`` for an analyst request."""
    system_prompt = ANALYST_PROMPTS.get(analysis_type or "", _DEFAULT_ANALYST_PROMPT)
    template = _ANALYST_USER_TEMPLATES.get(analysis_type or "")
    if company and template:
        return system_prompt, template.format(company=company, query=query)
    return system_prompt, query
