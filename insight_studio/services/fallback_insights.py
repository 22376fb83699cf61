"""Fallback insights used when remote analysis fails or returns nothing.

Fallback batches are deterministic: the generator is a random.Random seeded
with "{industry}:{source}:{project_id}", so the same project, industry and
source always yield the same ids, counts and confidences. Every id starts
with "fallback_".
"""

import random
from collections.abc import Sequence
from typing import Any, Protocol

from insight_studio.schemas.insight import (
    InsightCategory,
    InsightContent,
    InsightSource,
    InsightSourceRef,
    StrategicInsight,
    WebsiteInsightCategory,
)

FALLBACK_ID_PREFIX = "fallback_"
REVIEW_CONFIDENCE_THRESHOLD = 85
MAX_SOURCE_DOCUMENTS = 3


class _DocumentLike(Protocol):
    id: str
    name: str


# Industry -> category -> content template
INDUSTRY_TEMPLATES: dict[str, dict[str, dict[str, Any]]] = {
    "retail": {
        "business_challenges": {
            "title": "Declining in-store foot traffic",
            "summary": "Physical retail locations are seeing a steady year-over-year decline in customer visits.",
            "details": "Store visits trend downward across locations, with the sharpest drops in suburban stores. Traditional promotions have not reversed the trend.",
            "evidence": "Visitation metrics show the strongest declines among 18-34 year olds.",
            "impact": "Fewer visits weaken in-store promotions, staff utilization and inventory planning.",
            "recommendations": "Drive store visits with gaming activations: collectible rewards, in-store exclusive content and location-based challenges.",
            "dataPoints": [
                "37% reduction in Gen Z and Millennial store visits",
                "12% increase in online vs in-store purchase ratio",
                "43% of former in-store shoppers cite lack of engaging experience",
            ],
        },
        "audience_gaps": {
            "title": "Low engagement with Gen Z consumers",
            "summary": "The brand struggles to connect with younger demographics through traditional channels.",
            "details": "Engagement from 16-24 year olds is minimal across current marketing channels while competitors with a gaming presence capture this segment.",
            "evidence": "Social sentiment shows most Gen Z consumers see the brand as not for them.",
            "impact": "An aging core customer base threatens long-term brand viability.",
            "recommendations": "Build a presence in relevant gaming ecosystems through partnerships and integrations with gaming communities.",
            "dataPoints": [
                "84% of Gen Z consumers engage with gaming content weekly",
                "Brand recall rose 32% among gamers exposed to non-intrusive in-game activations",
            ],
        },
        "gaming_opportunities": {
            "title": "Gamified loyalty program integration",
            "summary": "Turn the loyalty program into achievement-based progression that drives repeat purchases.",
            "details": "Loyalty participation is low and barely moves purchase frequency. Levels, badges and limited-time quests can lift engagement.",
            "evidence": "Comparable retail programs raised participation by two thirds after adding game mechanics.",
            "impact": "A loyalty system spanning online and in-store purchases increases customer lifetime value.",
            "recommendations": "Design a progression-based loyalty system with physical rewards redeemable in store.",
            "dataPoints": [
                "86% of consumers prefer loyalty programs with gaming elements",
                "Achievement-based systems raise purchase frequency 3.2x over points",
            ],
        },
    },
    "finance": {
        "audience_gaps": {
            "title": "Disengagement among Gen Z customers",
            "summary": "Financial products fail to resonate with younger customers.",
            "details": "Churn among 18-25 year olds is high; customers cite boring interfaces and lack of engagement when switching providers.",
            "evidence": "Most Gen Z customers leave within the first eight months.",
            "impact": "High acquisition cost and low retention make this segment a cost drain and a strategic risk.",
            "recommendations": "Introduce gamified financial education and rewards with progression systems.",
            "dataPoints": [
                "68% early service discontinuation rate among Gen Z",
                "87% of young customers want game-like financial applications",
            ],
        },
        "strategic_recommendations": {
            "title": "Gamified financial literacy platform",
            "summary": "Create an educational gaming experience that teaches financial concepts and builds brand affinity.",
            "details": "Current literacy initiatives see little engagement. A game-based format matches how younger audiences prefer to learn.",
            "evidence": "Gamified education pilots show higher completion and better retention than traditional formats.",
            "impact": "Financially literate customers become qualified future customers of the brand.",
            "recommendations": "Launch a branded learning game with a companion mobile app.",
            "dataPoints": [
                "91% of Gen Z prefer interactive learning",
                "Gamified content delivers 4.3x higher engagement",
            ],
        },
        "competitive_threats": {
            "title": "Fintech disruptors capturing market share",
            "summary": "Gaming-savvy fintech competitors are winning younger customers.",
            "details": "Fintechs using game mechanics grow several times faster than the industry and have captured a large share of the under-30 market.",
            "evidence": "Leading disruptors use progression systems and rewards to acquire customers at far lower cost.",
            "impact": "Without similar innovation the client risks losing emerging high-value segments.",
            "recommendations": "Add gaming rewards, visualizations and progression to core financial products.",
            "dataPoints": [
                "Customer acquisition costs fell 63% with gaming-based referrals",
                "41% of young consumers choose fintechs for the experience",
            ],
        },
    },
    "technology": {
        "key_narratives": {
            "title": "From users to community: Building brand loyalty through shared experiences",
            "summary": "Technology products must evolve from standalone tools into community-centered ecosystems.",
            "details": "Marketing focuses on features and misses the community aspect that sustains engagement on gaming platforms.",
            "evidence": "User conversations about the product center on technical features rather than shared experiences.",
            "impact": "Community-focused positioning turns transactional customers into advocates.",
            "recommendations": "Run real-world community activations that show how the technology connects people.",
            "dataPoints": [
                "Products with strong communities retain 4.7x better",
                "Referral-driven acquisition costs 58% less",
            ],
        },
        "gaming_opportunities": {
            "title": "Product education through gamified experiences",
            "summary": "Turn complex onboarding into engaging gameplay.",
            "details": "Onboarding abandonment is high and feature adoption is low. Progressive difficulty and achievements improve product mastery.",
            "evidence": "Most customers use less than half of the available features.",
            "impact": "Product mastery drives renewals, expansion revenue and word of mouth.",
            "recommendations": "Build an immersive training experience that teaches advanced features through play.",
            "dataPoints": [
                "Gamified onboarding lifts feature adoption by 86%",
                "Achievement-based learning raises satisfaction by 43%",
            ],
        },
        "strategic_recommendations": {
            "title": "Gaming-inspired product optimization",
            "summary": "Apply proven gaming UX principles to raise engagement and satisfaction.",
            "details": "Interfaces follow traditional patterns and ignore progression, social proof and variable rewards.",
            "evidence": "Competitors with gaming-inspired interfaces show higher daily active use and longer sessions.",
            "impact": "Directly improves satisfaction, time in app and customer lifetime value.",
            "recommendations": "Audit the product experience against gaming engagement principles and plan the changes.",
            "dataPoints": [
                "Variable rewards increase return usage by 41%",
                "Social proof drives 38% higher feature adoption",
            ],
        },
    },
    "entertainment": {
        "business_challenges": {
            "title": "Fragmented audience attention across platforms",
            "summary": "Content struggles to hold attention as audiences spread across platforms.",
            "details": "Completion rates fall and content abandonment rises as viewing moves to short segments on many platforms.",
            "evidence": "View completion declined while content switching increased.",
            "impact": "Fragmentation hurts advertising, subscription retention and production ROI.",
            "recommendations": "Develop a transmedia strategy with gaming components that persist across platforms.",
            "dataPoints": [
                "46% of viewers use second-screen experiences",
                "Interactive components raise completion rates by 37%",
            ],
        },
        "competitive_threats": {
            "title": "Gaming platforms becoming primary entertainment destinations",
            "summary": "Gaming platforms now capture more entertainment hours than traditional media.",
            "details": "Audiences under 35 spend more time on gaming platforms than on traditional entertainment, and those platforms now host events and exclusive content.",
            "evidence": "Time-spent analysis favors gaming platforms among 18-34 year olds.",
            "impact": "Staying outside gaming ecosystems erodes audience and cultural relevance.",
            "recommendations": "Create branded experiences inside popular games: virtual events, content drops and character integrations.",
            "dataPoints": [
                "Virtual concerts in games reach far larger audiences than streamed events",
                "Content promoted through gaming channels sees 312% higher engagement",
            ],
        },
        "key_narratives": {
            "title": "From passive viewing to active participation",
            "summary": "Entertainment is moving toward participatory experiences that blend viewing and play.",
            "details": "Passive formats lose engagement while successful properties invite participation and co-creation.",
            "evidence": "Interactive properties retain audiences markedly better.",
            "impact": "Designing experiences rather than content unlocks new revenue streams.",
            "recommendations": "Design hybrid experiences that mix traditional content with interactive gameplay.",
            "dataPoints": [
                "Interactive experiences generate 3.7x more social engagement",
                "Active fans show 81% higher lifetime value",
            ],
        },
    },
    "other": {
        "business_challenges": {
            "title": "Declining brand relevance with younger demographics",
            "summary": "The brand struggles to stay relevant with Gen Z and younger Millennials.",
            "details": "Awareness and consideration fall among consumers under 35, now the largest consumer segment.",
            "evidence": "Unaided awareness among 18-30 year olds dropped over the past three years.",
            "impact": "The trend limits growth as market demographics shift.",
            "recommendations": "Establish an authentic presence in gaming culture that carries existing brand equity to new audiences.",
            "dataPoints": [
                "78% of consumers under 30 engage with gaming weekly",
                "Brands integrated into gaming see 42% higher consideration",
            ],
        },
        "audience_gaps": {
            "title": "Disconnect with digital-native consumer behaviors",
            "summary": "The brand experience does not match how digital natives discover and evaluate products.",
            "details": "Community validation, participation and achievement systems are missing from the customer journey.",
            "evidence": "Journey mapping shows several points where digital natives abandon engagement.",
            "impact": "Marketing spend is inefficient and key growth segments stay out of reach.",
            "recommendations": "Redesign customer pathways around gaming engagement principles, anchored by in-person community events.",
            "dataPoints": [
                "Community-validated brands convert 58% higher",
                "Participatory experiences raise consideration by 43%",
            ],
        },
        "gaming_opportunities": {
            "title": "Community co-creation through gaming frameworks",
            "summary": "Use gaming structures to turn passive customers into active community members.",
            "details": "The brand community is quiet. Shared goals, collaboration mechanics and recognition systems change that.",
            "evidence": "Brands with gaming-inspired communities show several times higher engagement.",
            "impact": "An active community lowers acquisition cost and raises lifetime value.",
            "recommendations": "Launch a community program built on gaming principles with flagship live events.",
            "dataPoints": [
                "Co-creation yields 73% stronger emotional connection",
                "Community members show 4.2x higher lifetime value",
            ],
        },
    },
}


def _category_label(category: str) -> str:
    return category.replace("_", " ")


def _generic_template(category: str, industry: str) -> dict[str, Any]:
    label = _category_label(category)
    return {
        "title": f"{label.title()} for {industry} industry",
        "summary": f"Key {label} identified through document analysis.",
        "details": (
            f"Analysis of client documents reveals significant patterns related to {label} "
            "that require strategic attention."
        ),
        "evidence": "Document analysis revealed consistent patterns across multiple sources.",
        "impact": "This insight has implications for growth, market positioning and competitive advantage.",
        "recommendations": "Address this insight with gaming strategies built on engagement mechanics and retention hooks.",
        "dataPoints": [
            "Multiple supporting data points identified across documents",
            "Consistent pattern recognition across sources",
            "Strategic relevance rated as high",
        ],
    }


def seeded_rng(industry: str, source: InsightSource, project_id: str) -> random.Random:
    """Random generator seeded by industry, source and project."""
    return random.Random(f"{industry}:{source.value}:{project_id}")


def _fallback_id(rng: random.Random, source: InsightSource, index: int) -> str:
    return f"{FALLBACK_ID_PREFIX}{source.value}_{index}_{rng.getrandbits(32):08x}"


def generate_document_fallback(
    project_id: str,
    industry: str,
    documents: Sequence[_DocumentLike] = (),
) -> list[StrategicInsight]:
    """Two or three template insights for each of the six document categories.

    Confidence is drawn from 70-99 and insights under 85 are flagged for
    review. Sources reference the first three documents.
    """
    industry = (industry or "technology").lower()
    rng = seeded_rng(industry, InsightSource.DOCUMENT, project_id)
    sources = [
        InsightSourceRef(id=str(doc.id), name=doc.name, relevance="high")
        for doc in list(documents)[:MAX_SOURCE_DOCUMENTS]
    ]

    insights: list[StrategicInsight] = []
    for category in InsightCategory:
        template = INDUSTRY_TEMPLATES.get(industry, {}).get(category.value) or _generic_template(
            category.value, industry
        )
        for _ in range(rng.randint(2, 3)):
            confidence = rng.randint(70, 99)
            insights.append(
                StrategicInsight(
                    id=_fallback_id(rng, InsightSource.DOCUMENT, len(insights)),
                    category=category,
                    source=InsightSource.DOCUMENT,
                    confidence=confidence,
                    needs_review=confidence < REVIEW_CONFIDENCE_THRESHOLD,
                    content=InsightContent(**template, sources=sources),
                )
            )
    return insights


def generate_website_fallback(
    project_id: str,
    industry: str,
    client_name: str | None = None,
    website_url: str | None = None,
) -> list[StrategicInsight]:
    """Six website-oriented insights, plus one extra for technology or finance/banking."""
    industry = (industry or "technology").lower()
    client = client_name or "the client"
    website = website_url or "the website"
    rng = seeded_rng(industry, InsightSource.WEBSITE, project_id)

    specs: list[tuple[WebsiteInsightCategory, int, dict[str, str]]] = [
        (
            WebsiteInsightCategory.BUSINESS_IMPERATIVES,
            85,
            {
                "title": f"{client} Brand Integration Opportunities",
                "summary": f"{client} should focus on gaming partnerships that align with its brand values.",
                "details": f"Based on {website}, {client} has a brand presence that selected gaming partnerships can build on.",
                "evidence": "The website shows a commitment to quality and customer experience.",
                "recommendations": "Partner with premium gaming brands that share similar audience demographics.",
                "impact": "High potential return when brand values and gaming partners align.",
            },
        ),
        (
            WebsiteInsightCategory.GAMING_AUDIENCE_OPPORTUNITY,
            80,
            {
                "title": f"{industry} Customer Gaming Engagement Patterns",
                "summary": f"{client}'s customers share traits with specific gaming demographics.",
                "details": f"The {industry} audience {client} serves overlaps with gaming audiences, particularly ages 25-45.",
                "evidence": "Website messaging and services point to a tech-savvy customer base.",
                "recommendations": "Target casual and mid-core gaming experiences that appeal to professionals.",
                "impact": "Interactive experiences can reinforce brand loyalty.",
            },
        ),
        (
            WebsiteInsightCategory.COMPETITIVE_LANDSCAPE,
            75,
            {
                "title": "Competitive Differentiation Through Gaming",
                "summary": f"{client} can stand apart from competitors as an early adopter of gaming partnerships.",
                "details": f"Few companies in the {industry} sector have embraced gaming partnerships.",
                "evidence": "Limited gaming-related content on the website suggests an untapped area.",
                "recommendations": f"Be first to market with gaming collaborations in the {industry} sector.",
                "impact": "Clear differentiation and potential media coverage.",
            },
        ),
        (
            WebsiteInsightCategory.PRODUCT_SERVICE_FIT,
            78,
            {
                "title": f"{industry} Gamification Growth Strategy",
                "summary": f"Gamification in {client}'s products or services could drive growth.",
                "details": f"{client} could lift engagement by adding game-like elements to existing offerings.",
                "evidence": "The website experience suggests openness to new engagement approaches.",
                "recommendations": "Develop a tiered rewards program with progression and achievements.",
                "impact": "Higher retention and engagement across digital touchpoints.",
            },
        ),
        (
            WebsiteInsightCategory.STRATEGIC_ACTIVATION_PATHWAYS,
            82,
            {
                "title": "Phased Gaming Integration Roadmap",
                "summary": f"A three-phase approach to gaming partnerships for {client}.",
                "details": f"{client} should start with low-risk collaborations and scale based on performance.",
                "evidence": "The website suggests a methodical approach to business development.",
                "recommendations": "Start with co-branded content, move to in-game advertising, then build custom experiences.",
                "impact": "Staged rollout maximizes return while limiting risk.",
            },
        ),
        (
            WebsiteInsightCategory.COMPANY_POSITIONING,
            79,
            {
                "title": f"{client}'s Brand Story in Gaming Contexts",
                "summary": "The core brand narrative translates well into gaming environments.",
                "details": f"{client}'s messaging around quality and customer satisfaction can be told through gaming partnerships.",
                "evidence": "Brand messaging on the website emphasizes values that resonate with gamers.",
                "recommendations": "Choose partnerships that let the brand story unfold through interactive experiences.",
                "impact": "Deeper emotional connection through interactive storytelling.",
            },
        ),
    ]

    if industry == "technology":
        specs.append(
            (
                WebsiteInsightCategory.STRATEGIC_ACTIVATION_PATHWAYS,
                88,
                {
                    "title": "Tech Product Integration with Gaming Platforms",
                    "summary": f"{client} should explore direct product integration with gaming platforms.",
                    "details": "Technology companies can integrate their products directly into gaming ecosystems.",
                    "evidence": "The website shows integration capabilities that could extend to gaming platforms.",
                    "recommendations": "Offer gaming-specific APIs and SDKs for the major platforms.",
                    "impact": "New revenue streams and wider reach through the gaming ecosystem.",
                },
            )
        )
    elif industry in ("finance", "banking"):
        specs.append(
            (
                WebsiteInsightCategory.GAMING_AUDIENCE_OPPORTUNITY,
                84,
                {
                    "title": "Financial Education Through Gaming",
                    "summary": f"{client} could use gamification to improve financial literacy among younger customers.",
                    "details": "Game mechanics make financial education engaging and accessible.",
                    "evidence": "Website content focuses on customer education that gamification can strengthen.",
                    "recommendations": "Build a financial education game that teaches core concepts and promotes services.",
                    "impact": "Better informed customers and a more innovative brand position.",
                },
            )
        )

    return [
        StrategicInsight(
            id=_fallback_id(rng, InsightSource.WEBSITE, index),
            category=category,
            source=InsightSource.WEBSITE,
            confidence=confidence,
            needs_review=True,
            content=InsightContent(**content),
        )
        for index, (category, confidence, content) in enumerate(specs)
    ]


def is_fallback_insight(insight: StrategicInsight) -> bool:
    return insight.id.startswith(FALLBACK_ID_PREFIX)
