"""Prompt templates for every pipeline stage.

Templates are plain format strings; the builder functions fill them so the
stage modules stay focused on calling the API and validating responses.
"""

from omnipedia.schemas.plan import ObjectPlan

SURPRISE_PROMPT = """Suggest ONE interesting subject for an educational "exploded view" encyclopedia.
It should be complex enough to have interesting internal parts, modules, or stages.
Examples: "Vintage SLR Camera", "Mechanical Wristwatch", "Human Heart", "Jet Engine Turbine", "Espresso Machine Grouphead".

Return ONLY the name.
Random Seed: {seed}"""

PLAN_PROMPT = """You are the chief architect of a universal knowledge engine. Create a comprehensive content plan for: "{topic}".

GOAL: Deconstruct this topic into its constituent parts so a reader learns how it works.

1. DOMAIN ANALYSIS
- Classify domain_type as PHYSICAL, SOFTWARE, CONCEPTUAL, BIOLOGICAL, or OTHER.
- Choose a visual_metaphor for the infographic:
  PHYSICAL -> "Exploded View"
  SOFTWARE -> "System Architecture Diagram" or "Data Flow Visualization"
  CONCEPTUAL -> "Mind Map" or "Abstract Concept Visualization"
  BIOLOGICAL -> "Anatomical Dissection"

2. SECTION TITLES (tailored to the topic)
- origin: History, Inception, or Root Cause
- anatomy: Structure, Components, Modules, or Stages
- article: How it works, The Mechanics, The Code, or The Philosophy
- trivia: "Did You Know?", "Edge Cases", or "Fun Facts"

3. CONTENT
- component_list: the 6-8 key parts (gears and lenses for physical objects, API/database/frontend for software, focus/breath/mantra for concepts).
- origin_story: concise overview, about 100 words.
- detailed_article: about 800 words, a deep technical or philosophical dive using Markdown headers.
- trivia: exactly 5 surprising facts.

4. VISUAL AND AUDIO STYLE
- visual_style_prompt: photorealistic for physical/biological subjects, high-end tech vector/3D for software, ethereal/surreal for concepts.
- audio_vibe: a narrator voice that fits the topic (e.g., Fenrir for intense tech, Zephyr for meditation).

Do not explain. Return JSON complying with the schema."""

INFOGRAPHIC_PROMPT = """Create a high-fidelity educational infographic: a "{metaphor}" of {topic}.

CONTEXT: This is a {domain} topic.
KEY COMPONENTS TO VISUALIZE: {components}.

VISUAL STYLE: {style}.

REQUIREMENTS:
- Physical/Biological: floating parts, exploded view, leader lines, studio lighting.
- Software/Tech: 3D isometric architecture, glowing data streams, floating modules connected by logical flows, dark mode tech aesthetic.
- Conceptual: abstract 3D representation, floating spheres or planes for concepts, ethereal lighting, interconnected nodes.

COMPOSITION: Clean, centered, educational, high resolution."""

ASSEMBLED_PROMPT = """A photorealistic studio shot (or high-end 3D render) of the finished, complete state of {title} ({topic}).

CONTEXT: {description}
DOMAIN: {domain}

CRITICAL INSTRUCTIONS:
- Physical: the object is CLOSED, INTACT, and WHOLE, sitting on a surface.
- Software: a futuristic dashboard or interface on a glass tablet or floating hologram, showing the running application.
- Conceptual: a harmonious, unified symbol or scene representing mastery or completion of the concept.
- Treat the attached exploded view/diagram as the source of truth for materials and aesthetics, but show the ASSEMBLED state."""

DEEP_DIVE_PROMPT = """Research and write a detailed educational component analysis for: {topic}.

TOOLS: Use Google Search to find accurate, up-to-date technical, scientific, or historical details for each component.
COMPONENTS: {components}

OUTPUT: a SINGLE JSON object with a "components" array. For each component:
- "name": the component name, exactly as listed.
- "composition": material for physical parts (e.g., "Titanium"), language/framework for software (e.g., "REST API"), core principle for concepts.
- "short_description": one sentence summary.
- "detailed_content": 3-4 paragraphs (about 200 words) on function, implementation, or significance.

Output JSON ONLY.
Structure: {{"components": [ ... ]}}"""

VIDEO_PROMPT = """Cinematic technical animation of {topic}.

TYPE: {domain} ({metaphor}).

ACTION:
- Physical: slow-motion exploded view assembly, parts fly in and lock together.
- Software: data packets flowing through the architecture, modules lighting up, code compiling into a UI.
- Conceptual: abstract shapes morphing and harmonizing into a unified sphere of light.

STYLE: High-end 8k render, smooth motion, educational focus. No text overlays."""

NARRATION_SCRIPT_PROMPT = """You are an expert narrator (tech evangelist, historian, or guru depending on the topic). Write a rich, engaging 45-60 second script about: {topic}.

SOURCE MATERIAL:
- Context: "{origin}"
- Deep Dive: "{article}..."
- Trivia: {trivia}
- Tone: {tone}

STRUCTURE:
1. The Hook: grab attention with the significance of the topic.
2. The Mechanics: briefly explain how the components interact.
3. The Impact: conclude with why this matters.

Do NOT include stage directions. Just the raw spoken text."""


def surprise_prompt(seed: int) -> str:
    return SURPRISE_PROMPT.format(seed=seed)


def plan_prompt(topic: str) -> str:
    return PLAN_PROMPT.format(topic=topic)


def infographic_prompt(topic: str, plan: ObjectPlan) -> str:
    return INFOGRAPHIC_PROMPT.format(
        topic=topic,
        metaphor=plan.visual_metaphor,
        domain=plan.domain_type.value,
        components=", ".join(plan.component_list),
        style=plan.visual_style_prompt,
    )


def assembled_prompt(topic: str, plan: ObjectPlan) -> str:
    return ASSEMBLED_PROMPT.format(
        topic=topic,
        title=plan.display_title,
        description=plan.origin_story,
        domain=plan.domain_type.value,
    )


def deep_dive_prompt(topic: str, components: list[str]) -> str:
    return DEEP_DIVE_PROMPT.format(topic=topic, components=", ".join(components))


def video_prompt(topic: str, plan: ObjectPlan) -> str:
    return VIDEO_PROMPT.format(topic=topic, domain=plan.domain_type.value, metaphor=plan.visual_metaphor)


def narration_script_prompt(topic: str, plan: ObjectPlan, max_article_chars: int) -> str:
    """Build the narration prompt, truncating the article to a bounded prefix."""
    return NARRATION_SCRIPT_PROMPT.format(
        topic=topic,
        origin=plan.origin_story,
        article=plan.detailed_article[:max_article_chars],
        trivia=", ".join(plan.trivia),
        tone=plan.audio_vibe.tone_description or "tailored to the subject",
    )
