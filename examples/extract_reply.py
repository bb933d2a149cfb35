"""
Extraction example: markers win over fences, fences are always catalogued.
"""

from __future__ import annotations

from silicon_chat.extraction import END_MARKER, START_MARKER, extract

REPLY = f"""Sure, here you go.

```json
{{"title": "Weather"}}
```

{START_MARKER}
<div class="weather">Sunny</div>
{END_MARKER}

```javascript
export default () => null;
```
"""


def main() -> None:
    result = extract(REPLY)
    print(f"origin: {result.origin.value}")
    print(f"primary content: {result.primary_content}")
    for block in result.code_blocks:
        print(f"[{block.language}] {block.content}")


if __name__ == "__main__":
    main()
