"""Generative AI collaborator: soil/plant diagnosis, chat, blog drafts, rotation plans.

Calls the Gemini ``generateContent`` REST endpoint over plain HTTPS. Every
failure surfaces as an :class:`AIError` subclass so callers can fall back to a
static message without persisting anything.
"""
import base64
import json
import logging
import math
import urllib.error
import urllib.parse
import urllib.request

from .models import SOIL_LANGUAGES, SOIL_MODE_PLANT, SOIL_MODE_SOIL, normalize_soil_mode

logger = logging.getLogger(__name__)

CHAT_SYSTEM_INSTRUCTION = (
    'You are an expert organic farming assistant for Mothercrop. Answer questions about sustainable '
    'agriculture, vegetables, soil health, and organic practices. Keep answers concise and friendly.'
)
CHAT_FALLBACK_REPLY = 'Sorry, I had trouble digging up that answer. Try asking something else!'
CHAT_UNCONFIGURED_REPLY = "I'm currently resting (API Key missing). Please try again later."
ANALYSIS_FALLBACK_MESSAGE = 'Could not analyze image. Please try a clearer photo or try again later.'

_BLOCK_TEXT_FIELDS = ('type', 'summary')
_BLOCK_LIST_FIELDS = ('issues', 'fixes', 'recommendations')
_COMPOSITION_FIELDS = ('sand', 'silt', 'clay', 'organicMatter')
_NUTRIENT_FIELDS = ('nitrogen', 'phosphorus', 'potassium')


class AIError(Exception):
    pass


class AIConfigurationError(AIError):
    pass


class AIServiceError(AIError):
    pass


class AIResponseError(AIError):
    pass


class GeminiClient:
    def __init__(self, api_key, model='gemini-2.5-flash', timeout=30,
                 api_base='https://generativelanguage.googleapis.com/v1beta'):
        self.api_key = (api_key or '').strip()
        self.model = model
        self.timeout = timeout
        self.api_base = api_base.rstrip('/')

    @classmethod
    def from_config(cls, config):
        return cls(
            config.get('GEMINI_API_KEY'),
            model=config.get('GEMINI_MODEL') or 'gemini-2.5-flash',
            timeout=config.get('AI_TIMEOUT_SECONDS') or 30,
            api_base=config.get('GEMINI_API_BASE') or 'https://generativelanguage.googleapis.com/v1beta',
        )

    @property
    def configured(self):
        return bool(self.api_key)

    def _endpoint(self):
        model = urllib.parse.quote(self.model, safe='')
        return f'{self.api_base}/models/{model}:generateContent'

    def build_payload(self, prompt, image=None, mime_type=None, json_mode=False, system_instruction=None):
        parts = []
        if image:
            parts.append({
                'inline_data': {
                    'mime_type': mime_type or 'image/jpeg',
                    'data': base64.b64encode(image).decode('ascii'),
                }
            })
        parts.append({'text': prompt})
        payload = {'contents': [{'role': 'user', 'parts': parts}]}
        if json_mode:
            payload['generationConfig'] = {'responseMimeType': 'application/json'}
        if system_instruction:
            payload['systemInstruction'] = {'parts': [{'text': system_instruction}]}
        return payload

    def generate(self, prompt, image=None, mime_type=None, json_mode=False, system_instruction=None):
        if not self.configured:
            raise AIConfigurationError('GEMINI_API_KEY is not configured.')

        body = json.dumps(
            self.build_payload(prompt, image, mime_type, json_mode, system_instruction)
        ).encode('utf-8')
        req = urllib.request.Request(self._endpoint(), data=body, method='POST')
        req.add_header('Content-Type', 'application/json')
        req.add_header('x-goog-api-key', self.api_key)

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # nosec B310
                raw = resp.read().decode('utf-8', errors='replace')
        except urllib.error.HTTPError as e:
            error_body = e.read().decode('utf-8', errors='replace')
            logger.error('Gemini API error %s: %s', e.code, error_body[:500])
            raise AIServiceError(f'Gemini API returned HTTP {e.code}.') from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            logger.error('Gemini API request failed: %s', e)
            raise AIServiceError('Gemini API request failed.') from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise AIResponseError('Gemini API returned a non-JSON body.') from e
        text = response_text(data)
        if not text.strip():
            raise AIResponseError('No content received from the AI service.')
        return text


def client_for_app(app):
    """The client installed in ``app.extensions['ai_client']``, else one built from config."""
    client = app.extensions.get('ai_client')
    if client is None:
        client = GeminiClient.from_config(app.config)
    return client


def response_text(data):
    chunks = []
    candidates = data.get('candidates') if isinstance(data, dict) else None
    for candidate in candidates if isinstance(candidates, list) else []:
        content = candidate.get('content') if isinstance(candidate, dict) else None
        parts = content.get('parts') if isinstance(content, dict) else None
        for part in parts if isinstance(parts, list) else []:
            if isinstance(part, dict) and isinstance(part.get('text'), str):
                chunks.append(part['text'])
        if chunks:
            break
    return ''.join(chunks)


def extract_json_object(text):
    """Parse the first balanced ``{...}`` region in ``text``.

    Models asked for JSON still wrap it in prose or code fences now and then;
    braces inside string literals are ignored while matching.
    """
    if not isinstance(text, str):
        raise AIResponseError('AI response is empty.')
    start = text.find('{')
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == '\\':
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    try:
                        parsed = json.loads(text[start:index + 1])
                    except json.JSONDecodeError:
                        break
                    if isinstance(parsed, dict):
                        return parsed
                    break
        start = text.find('{', start + 1)
    raise AIResponseError('AI response did not contain a JSON object.')


def _clean_list(value, limit=12):
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()][:limit]


def _as_number(value, default=0.0):
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    # NaN and infinities come through json.loads and float('nan') alike.
    return number if math.isfinite(number) else default


def _clamp_score(value):
    return int(max(0, min(100, round(_as_number(value)))))


def normalize_report_block(block, mode):
    block = block if isinstance(block, dict) else {}
    normalized = {field: str(block.get(field) or '').strip() for field in _BLOCK_TEXT_FIELDS}
    for field in _BLOCK_LIST_FIELDS:
        normalized[field] = _clean_list(block.get(field))
    if not normalized['recommendations']:
        normalized['recommendations'] = _clean_list(block.get('crops'))
    if mode == SOIL_MODE_SOIL:
        composition = block.get('composition') if isinstance(block.get('composition'), dict) else {}
        normalized['composition'] = {
            field: round(max(0.0, min(100.0, _as_number(composition.get(field)))), 1)
            for field in _COMPOSITION_FIELDS
        }
        nutrients = block.get('nutrients') if isinstance(block.get('nutrients'), dict) else {}
        normalized['nutrients'] = {
            field: str(nutrients.get(field) or 'unknown').strip().lower() for field in _NUTRIENT_FIELDS
        }
        normalized['nutrients']['ph'] = round(_as_number(nutrients.get('ph'), 7.0), 1)
    return normalized


def normalize_soil_result(payload, mode=SOIL_MODE_SOIL):
    """Coerce an AI payload into a ``SoilAnalysisResult``; raises AIResponseError when unusable."""
    if not isinstance(payload, dict):
        raise AIResponseError('Analysis payload is not an object.')
    mode = normalize_soil_mode(str(payload.get('mode') or mode), default=normalize_soil_mode(mode))
    english_source = payload.get('en') if isinstance(payload.get('en'), dict) else payload
    english = normalize_report_block(english_source, mode)
    if not english['summary'] and not english['type']:
        raise AIResponseError('Analysis payload has no diagnosis.')
    result = {'mode': mode, 'score': _clamp_score(payload.get('score'))}
    for language in SOIL_LANGUAGES:
        if language == 'en':
            result[language] = english
            continue
        block = payload.get(language)
        result[language] = normalize_report_block(block, mode) if isinstance(block, dict) else dict(english)
    return result


def _soil_prompt(mode):
    if mode == SOIL_MODE_PLANT:
        return (
            'You are an expert plant pathologist. Diagnose the plant in this image: identify the '
            'plant and any disease, pest damage or nutrient deficiency.\n'
            'Respond with raw JSON only, shaped as:\n'
            '{"mode": "plant", "score": number (0-100 plant health),\n'
            ' "en": {"type": string (diagnosis), "summary": string (2 sentences),\n'
            '        "issues": [string] (observed symptoms), "fixes": [string] (organic treatments),\n'
            '        "recommendations": [string] (prevention tips)},\n'
            ' "hi": {same fields as "en", written in Hindi}}'
        )
    return (
        'You are an expert Agronomist and Soil Scientist. Analyze this image of soil. Identify its '
        'likely texture (clay, sandy, silty, loam), moisture content based on color, and organic '
        'matter visibility.\n'
        'Respond with raw JSON only, shaped as:\n'
        '{"mode": "soil", "score": number (0-100, where 100 is perfect loam),\n'
        ' "en": {"type": string (e.g. "Sandy Loam"), "summary": string (2 sentences),\n'
        '        "issues": [string], "fixes": [string] (organic remedies),\n'
        '        "recommendations": [string] (suitable vegetables),\n'
        '        "composition": {"sand": %, "silt": %, "clay": %, "organicMatter": %},\n'
        '        "nutrients": {"nitrogen": "low|medium|high", "phosphorus": "low|medium|high",\n'
        '                      "potassium": "low|medium|high", "ph": number}},\n'
        ' "hi": {same fields as "en", free text written in Hindi}}'
    )


def analyze_soil_image(client, image, mime_type, mode=SOIL_MODE_SOIL):
    mode = normalize_soil_mode(mode)
    text = client.generate(_soil_prompt(mode), image=image, mime_type=mime_type, json_mode=True)
    return normalize_soil_result(extract_json_object(text), mode)


def chat_reply(client, message, history=None):
    transcript = []
    for item in (history or [])[-10:]:
        if isinstance(item, dict) and item.get('text'):
            speaker = 'Customer' if item.get('role') == 'user' else 'Assistant'
            transcript.append(f"{speaker}: {item['text']}")
    prompt = message
    if transcript:
        prompt = 'Conversation so far:\n' + '\n'.join(transcript) + f'\n\nCustomer: {message}'
    return client.generate(prompt, system_instruction=CHAT_SYSTEM_INSTRUCTION).strip()


def generate_blog_post(client, topic):
    prompt = (
        f'Write a blog post for Mothercrop, an organic farm, about: {topic}\n'
        'Respond with raw JSON only, shaped as:\n'
        '{"title": string, "excerpt": string (1-2 sentences), "content": string (4-6 paragraphs, '
        'separated by blank lines), "category": string,\n'
        ' "seo": {"metaTitle": string, "metaDescription": string, "keywords": string (comma separated)}}'
    )
    payload = extract_json_object(client.generate(prompt, json_mode=True))
    title = str(payload.get('title') or '').strip()
    content = str(payload.get('content') or '').strip()
    if not title or not content:
        raise AIResponseError('Generated post is missing a title or body.')
    seo = payload.get('seo') if isinstance(payload.get('seo'), dict) else {}
    return {
        'title': title,
        'excerpt': str(payload.get('excerpt') or '').strip(),
        'content': content,
        'category': str(payload.get('category') or 'General').strip() or 'General',
        'seo': {
            'metaTitle': str(seo.get('metaTitle') or title).strip(),
            'metaDescription': str(seo.get('metaDescription') or payload.get('excerpt') or '').strip(),
            'keywords': str(seo.get('keywords') or '').strip(),
        },
    }


def plan_crop_rotation(client, crops, beds=3, years=3):
    crop_list = ', '.join(crops) or 'common vegetables'
    prompt = (
        f'Plan an organic crop rotation for {beds} garden beds over {years} years using: {crop_list}.\n'
        'Respond with raw JSON only, shaped as:\n'
        '{"years": [{"year": number, "beds": [{"bed": string, "crop": string, "family": string}]}],\n'
        ' "notes": [string]}'
    )
    payload = extract_json_object(client.generate(prompt, json_mode=True))
    entries = payload.get('years')
    if not isinstance(entries, list):
        raise AIResponseError('Rotation plan "years" is not a list.')
    plan_years = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        beds = entry.get('beds')
        plan_beds = [
            {
                'bed': str(bed.get('bed') or '').strip(),
                'crop': str(bed.get('crop') or '').strip(),
                'family': str(bed.get('family') or '').strip(),
            }
            for bed in (beds if isinstance(beds, list) else [])
            if isinstance(bed, dict) and bed.get('crop')
        ]
        plan_years.append({'year': int(_as_number(entry.get('year'), len(plan_years) + 1)), 'beds': plan_beds})
    if not plan_years:
        raise AIResponseError('Rotation plan has no years.')
    return {'years': plan_years, 'notes': _clean_list(payload.get('notes'))}
