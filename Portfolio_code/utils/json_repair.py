# utils/json_repair.py
import re

def repair_json(text: str) -> str:
    """
    Do simple repairs: remove markdown fences, trailing commas, unquoted keys.
    Isolates the outermost JSON object or array in model output.
    """
    if not text:
        return text
    t = text.replace("```json", "").replace("```", "").strip()
    # isolate first JSON object/array
    starts = [i for i in (t.find("{"), t.find("[")) if i >= 0]
    if starts:
        start = min(starts)
        closer = "}" if t[start] == "{" else "]"
        end = t.rfind(closer)
        if end > start:
            t = t[start:end + 1]
    # trailing commas
    t = re.sub(r",(\s*[\]}])", r"\1", t)
    # quote keys if missing
    t = re.sub(r'(\{|,)\s*([A-Za-z_][A-Za-z0-9_\-]*)\s*:', r'\1 "\2":', t)
    return t
