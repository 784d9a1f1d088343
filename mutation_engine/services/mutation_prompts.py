"""
Mutation Prompt Builders

System prompts and user-prompt builders for every LLM call the pipeline
makes: intent classification, the five mutation strategies, the original-flow
fallback and responsive conversion.
"""

from typing import Optional

from models import DocumentState, Intent, ResolvedContext

ATTACHED_IMAGE_PLACEHOLDER = "https://placehold.co/600x400?text=Attached+Image"
GENERIC_IMAGE_PLACEHOLDER = "https://placehold.co/600x400"

IMAGE_RULES = f"""- NO BASE64: Never output base64 or SVG data URLs for images.
- PLACEHOLDERS: Use "{GENERIC_IMAGE_PLACEHOLDER}" for generic images.
- ATTACHED IMAGES: If the user attached an image, reference it as "{ATTACHED_IMAGE_PLACEHOLDER}"."""

JSON_ESCAPING_RULES = """CRITICAL JSON FORMATTING RULES:
1. Respond with ONLY valid JSON, no markdown wrapping
2. Escape special characters properly:
   - Newlines as \\n (not literal newlines)
   - Quotes as \\"
   - Backslashes as \\\\"""

JAVASCRIPT_SAFETY_RULES = """JAVASCRIPT SAFETY RULES:
1. Check that elements exist before attaching event listeners
2. Null-check every DOM query: if (element) { ... }
3. Keep every component self-contained"""


FRAGMENT_SYSTEM_PROMPT = f"""You are a precision web code editor. You return ONLY the piece of code that has to change, never the whole file.

RESPONSE FORMAT - JSON only:
{{
  "message": "Short description of the change",
  "htmlFragment": "ONLY the changed HTML subtree, or null when HTML is unchanged",
  "cssFragment": "ONLY the new or modified CSS rule blocks, or null",
  "jsFragment": "ONLY new JavaScript, or null",
  "mergeMode": "replace|append|wrap"
}}

RULES:
1. Return the smallest fragment that carries the change
2. CSS changes are complete rule blocks for the affected selectors; keep existing properties and only change or add what is needed
3. "replace" swaps the inner content of the target element, "append" adds new content at its end, "wrap" replaces the target element itself
4. Keep existing class names; never rename them
5. New class names carry a timestamp suffix (e.g. .promo-banner-1707654321)
6. Prefer Flexbox/Grid over hacks such as negative margins or !important
{IMAGE_RULES}"""


FULL_SYSTEM_PROMPT = f"""You are a creative web development assistant.

{JSON_ESCAPING_RULES}
3. New class names must contain a timestamp so CSS never collides
4. Format:
{{
  "message": "Describe your changes",
  "html": "Complete HTML (body content only, no DOCTYPE/html/head)",
  "css": "Complete CSS code",
  "javascript": "Complete JavaScript code"
}}

{JAVASCRIPT_SAFETY_RULES}

- HTML: return BODY content only. No DOCTYPE, html or head tags.
- FULL CODE RULE: changed fields hold their COMPLETE content. No snippets, no "... existing code ...".
- OPTIMIZATION RULE: return null for fields you did not change.
- PRESERVE existing structure and class names.
{IMAGE_RULES}"""


SELECTION_SYSTEM_PROMPT = f"""You are a precision UI editor for selection-driven edits.
The user highlighted areas of the page. Change ONLY the selected elements, or their immediate layout containers when the request needs it.

{JSON_ESCAPING_RULES}
3. Format:
{{
  "message": "Explain how the selected elements were changed",
  "html": "Complete HTML (body content only)",
  "css": "Complete CSS code",
  "javascript": "Complete JavaScript code or null"
}}

SELECTION RULES:
- The SELECTION CONTEXT lists ids, classes and text of the elements to change; they come first.
- You return the full code, but edits stay on the selected elements.
- Leave unselected sections alone unless the request (e.g. "center everything") requires otherwise.
- NO SNIPPETS: every returned field is complete.
- HTML: body content only. No DOCTYPE, html or head tags.
{IMAGE_RULES}"""


IMAGE_REFERENCE_SYSTEM_PROMPT = f"""You are a web development assistant that turns visual designs into code.

Recreate the attached reference image as faithfully as possible with HTML and CSS.

{JSON_ESCAPING_RULES}
3. New class names must contain a timestamp so CSS never collides
4. Format:
{{
  "message": "Describe what was recreated from the image",
  "html": "Complete HTML (body content only, no DOCTYPE/html/head)",
  "css": "Complete CSS code",
  "javascript": "Complete JavaScript code or null"
}}

RULES:
- Match colors, fonts, spacing and proportions of the image
- Lay out with modern CSS (flexbox, grid)
- Use realistic placeholder copy that fits the image content
- The main picture or subject shown in the reference uses "{ATTACHED_IMAGE_PLACEHOLDER}"
- FULL CODE RULE: return complete content, no snippets
{IMAGE_RULES}"""


IMAGE_EMBED_SYSTEM_PROMPT = f"""You are a precision web code editor. The user wants to place their attached image into the page.

{JSON_ESCAPING_RULES}
3. Format:
{{
  "message": "Describe where the image was placed",
  "html": "Updated HTML with the image placed, or null",
  "css": "Updated CSS with any image styling, or null",
  "javascript": null
}}

RULES:
- The attached image's source is always "{ATTACHED_IMAGE_PLACEHOLDER}"
- "as background" means CSS: background-image: url("{ATTACHED_IMAGE_PLACEHOLDER}")
- "placeholder" or "put this image" means swapping existing <img> placeholders for the attached image
- Change only the image placement; keep page structure and class names
- Return COMPLETE content for changed fields and null for unchanged ones
{IMAGE_RULES}"""


ORIGINAL_FLOW_SYSTEM_PROMPT = f"""You are a web development assistant.

{JSON_ESCAPING_RULES}
3. New class names must contain a timestamp so CSS never collides
4. Format:
{{
  "message": "Describe your changes",
  "html": "HTML content (body only)",
  "css": "Complete CSS code",
  "javascript": "Complete JavaScript code"
}}

{JAVASCRIPT_SAFETY_RULES}

- HTML: return BODY content only. No DOCTYPE, html or head tags.
- FULL CODE RULE: changed fields hold their COMPLETE content. No snippets.
- OPTIMIZATION RULE: return null for unchanged fields.
- PRESERVE existing structure and class names.
{IMAGE_RULES}"""


RESPONSIVE_SYSTEM_PROMPT = """You are a frontend CSS modification agent.

The current website is desktop-only and must look exactly the same on desktop resolutions.

Your task:

1. Move EVERY existing class name into a timestamp namespace.
   - Format: .originalName-{{TIMESTAMP}}
   - Example: .box -> .box-{{TIMESTAMP}}
   - Use exactly this timestamp everywhere: {{TIMESTAMP}}

2. Update HTML and CSS together:
   - Every class renamed in CSS is renamed in HTML too.
   - No old class names remain and no selector is duplicated.

3. Then add tablet and mobile responsiveness ONLY, using @media (max-width: 1024px) exclusively.

4. Desktop layout, spacing and appearance stay pixel-identical:
   - No redesign, no desktop spacing or typography changes, no removed rules.

5. Append the responsive overrides after the existing CSS.

6. Add JavaScript only when strictly required; otherwise return null for javascript.

Allowed changes inside @media:
- Font sizes
- Padding and margins
- Stacking elements vertically
- Hiding non-essential sidebars or secondary navigation

NAMESPACE RULES:
- IDs stay unchanged.
- Classes from external frameworks or third-party libraries stay unchanged.

CRITICAL JSON FORMATTING RULES:
1. Respond with ONLY valid JSON.
2. Escape newlines as \\n, quotes as \\", backslashes as \\\\.
3. The timestamp is EXACTLY {{TIMESTAMP}}, everywhere.

Format:
{
  "message": "Describe the layout you received, then the namespace conversion and responsive changes.",
  "html": "FULL updated body content with every class namespaced.",
  "css": "FULL CSS: renamed desktop rules plus the responsive @media overrides.",
  "javascript": null
}

FULL CODE RULE:
- Changed HTML or CSS is returned complete. No snippets, no '...existing code...'.
"""

RESPONSIVE_MODE_PROMPTS = {
    "compact": """Apply Compact Mobile Mode.

Characteristics:
- Slightly smaller font sizes
- Tighter padding and margins
- Higher content density
- Hide non-essential sidebars if present
- Keep touch targets usable""",

    "comfortable": """Apply Comfortable Mobile Mode.

Characteristics:
- Balanced font sizes
- Moderate padding and margins
- Touch-friendly button height (~44px)
- Stack layouts vertically where needed""",

    "spacious": """Apply Spacious (Accessible) Mobile Mode.

Characteristics:
- Larger font sizes
- Generous padding and margins
- Tall buttons (~52px or more)
- Clear separation between content blocks""",
}


def _feedback_block(feedback: Optional[str]) -> str:
    if not feedback:
        return ""
    return f"\n\nRETRY - THE PREVIOUS ATTEMPT FAILED VALIDATION:\n{feedback}"


def _code_block(document: DocumentState, include_empty_js: bool = True) -> str:
    parts = [f"HTML:\n{document.html}", f"CSS:\n{document.css}"]
    if document.javascript or include_empty_js:
        parts.append(f"JavaScript:\n{document.javascript}")
    return "\n\n".join(parts)


def build_intent_prompt(normalized_message: str, has_selection: bool, selection_context: Optional[str]) -> str:
    """User prompt for the structured intent classification call"""
    prompt = f"""Analyze this request sent to a web code editor and extract the structured intent.

User request: "{normalized_message}\""""

    if has_selection:
        prompt += f"""

CONTEXT: The user explicitly selected elements on the page:
{selection_context}

Decide whether the request applies ONLY to the selected elements (local) or needs changes around them (global)."""

    scope = "local|global" if has_selection else "global"
    prompt += f"""

Respond with ONLY a JSON object:
{{
  "action": "what the user wants to do",
  "targetHint": "element to target (e.g. '.my-class', '#id', 'navbar')",
  "scope": "{scope}",
  "property": "CSS/HTML property being changed, or null",
  "value": "desired value, or null",
  "complexity": "simple|medium|full"
}}

Rules:
- "local" scope: the change touches ONLY the selected elements. "global": it affects layout around them or adds sections elsewhere.
- "simple" = CSS-only change
- "medium" = HTML+CSS content or structure change
- "full" = major redesign or complex logic"""
    return prompt


def build_file_intent_prompt(message: str) -> str:
    return f"""Analyze this request and decide which code files are needed to fulfil it.
Respond ONLY with a JSON object: {{"intent": {{"html": boolean, "css": boolean, "js": boolean}}}}

Request: "{message}\""""


def build_fragment_prompt(intent: Intent, context: ResolvedContext, feedback: Optional[str] = None) -> str:
    """User prompt for a fragment edit: only the target region and its CSS"""
    prompt = f"TASK: {intent.normalized_message or intent.action}"

    if intent.has_selection:
        scope_rule = ("Do NOT modify the layout outside them." if intent.scope == "local"
                      else "You may adjust the surrounding layout if needed.")
        prompt += f"\n\nSELECTION CONTEXT - the user selected these elements:\n{intent.selection_context}\n\nFocus on these elements. {scope_rule}"

    lines = [
        f"TARGET ELEMENT: {context.selector} (resolved by: {context.resolved_by})",
        f"ACTION: {intent.action}",
    ]
    if intent.property:
        lines.append(f"PROPERTY: {intent.property}")
    if intent.value:
        lines.append(f"VALUE: {intent.value}")

    prompt += "\n\n" + "\n".join(lines)
    prompt += f"\n\nSURROUNDING HTML:\n{context.surrounding_html}"
    prompt += f"\n\nRELEVANT CSS:\n{context.surrounding_css}"
    return prompt + _feedback_block(feedback)


def build_full_prompt(intent: Intent, context: ResolvedContext, document: DocumentState,
                      feedback: Optional[str] = None) -> str:
    """User prompt for a whole-document regeneration"""
    prompt = f"TASK: {intent.normalized_message or intent.action}"
    prompt += f"\n\nPRIMARY TARGET: {context.selector} (resolved by: {context.resolved_by})"
    if intent.property and intent.value:
        prompt += f"\nEXPECTED CHANGE: {intent.property} -> {intent.value}"
    prompt += f"\n\nCURRENT CODE:\n{_code_block(document)}"
    return prompt + _feedback_block(feedback)


def build_selection_prompt(intent: Intent, document: DocumentState, feedback: Optional[str] = None) -> str:
    """User prompt for a selection-driven edit over the full document"""
    prompt = f"PRECISION TASK: {intent.normalized_message or intent.action}\n\n"
    prompt += f"SELECTION CONTEXT (priority targets):\n{intent.selection_context}\n\n"
    prompt += ("INSTRUCTION: Change the elements listed above as requested. The full code is included "
               "so the layout stays consistent, but edits stay on the selected areas.\n\n")
    prompt += f"CURRENT CODE:\n{_code_block(document, include_empty_js=False)}"
    return prompt + _feedback_block(feedback)


def build_image_reference_prompt(message: str, document: DocumentState) -> str:
    request = message or "Recreate this design as HTML/CSS code."
    if document.html and document.html.strip():
        existing = f"EXISTING CODE (keep its structure where possible):\nHTML:\n{document.html}\n\nCSS:\n{document.css}"
    else:
        existing = "There is no existing code. Build it from scratch."
    return f"{request}\n\n{existing}"


def build_image_embed_prompt(message: str, document: DocumentState) -> str:
    return f"""USER REQUEST: {message or 'Insert this image into the page.'}

INSTRUCTION:
1. Find the best place for the attached image.
2. Use exactly "{ATTACHED_IMAGE_PLACEHOLDER}" as its URL in the code.
3. Replace existing <img> src or CSS background-image values with that URL where appropriate.

CURRENT CODE:
{_code_block(document)}"""


def build_original_flow_prompt(message: str, document: DocumentState, has_image: bool) -> str:
    request = message or ("Build code based on this image." if has_image else "Update the code.")
    return f"""CURRENT CODE STATE:
{_code_block(document)}

User Request: {request}

INSTRUCTION: Use "{ATTACHED_IMAGE_PLACEHOLDER}" as the source for any attached image. Never output its data URL.

Generate the updated HTML, CSS and JS."""


def build_responsive_system_prompt(timestamp: str) -> str:
    return RESPONSIVE_SYSTEM_PROMPT.replace("{{TIMESTAMP}}", timestamp)


def build_responsive_prompt(mode: str, document: DocumentState) -> str:
    return f"{RESPONSIVE_MODE_PROMPTS[mode]}\n\n\nHTML: {document.html}\nCSS: {document.css}\nJS: {document.javascript}"
