import logging
from typing import Any, Dict, List

from flask import Flask, request, jsonify, make_response

from keypad_chain import MAX_SEQUENCE_DEPTH, SequenceEncoder
from keypads import KeypadError

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config['JSON_SORT_KEYS'] = False
app.json.sort_keys = False
app.config.update(
    KEYPAD_DEFAULT_ROBOTS=2,
    KEYPAD_MAX_ROBOTS=25,
    KEYPAD_WORKERS=4,
)
# FLASK_KEYPAD_MAX_ROBOTS=30 etc.
app.config.from_prefixed_env()

# Both keypad graphs and the cost tables are shared by every request
ENCODER = SequenceEncoder()


def bad_request(message: str):
    resp = make_response(jsonify({"error": message}), 400)
    resp.headers["Content-Type"] = "application/json"
    return resp


def parse_codes(data: Dict[str, Any]) -> List[str]:
    codes = data.get("codes")
    if codes is None:
        text = data.get("input")
        if not isinstance(text, str):
            raise ValueError("body needs 'codes' (list) or 'input' (text)")
        return [line.strip() for line in text.splitlines() if line.strip()]
    if not isinstance(codes, list) or not all(isinstance(c, str) for c in codes):
        raise ValueError("'codes' must be a list of strings")
    return [c.strip() for c in codes]


def parse_robots(data: Dict[str, Any]) -> int:
    robots = data.get("robots", app.config["KEYPAD_DEFAULT_ROBOTS"])
    # bool is an int subclass
    if isinstance(robots, bool) or not isinstance(robots, int):
        raise ValueError("'robots' must be an integer")
    limit = app.config["KEYPAD_MAX_ROBOTS"]
    if robots < 0 or robots > limit:
        raise ValueError(f"'robots' must be between 0 and {limit}")
    return robots


@app.route("/")
def root():
    return "OK", 200


@app.route("/keypad-conundrum", methods=["POST"])
def keypad_conundrum():
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        return bad_request("Expected a JSON object")

    try:
        codes = parse_codes(data)
        robots = parse_robots(data)
        with_sequence = data.get("sequence", False)
        if not isinstance(with_sequence, bool):
            raise ValueError("'sequence' must be true or false")
        if with_sequence and robots > MAX_SEQUENCE_DEPTH:
            return bad_request(f"'sequence' is only available up to {MAX_SEQUENCE_DEPTH} robots")

        results = ENCODER.evaluate(
            codes,
            robots,
            with_sequence=with_sequence,
            max_workers=app.config["KEYPAD_WORKERS"],
        )
    except (KeypadError, ValueError) as e:
        return bad_request(str(e))

    total = sum(r.complexity for r in results if r.error is None)
    return jsonify({
        "robots": robots,
        "results": [r.to_dict() for r in results],
        "total_complexity": total,
    })


if __name__ == "__main__":
    # For local development only
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.run(host='0.0.0.0', port=5000)
