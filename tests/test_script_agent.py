import json

from cinegen.agents.script import MAX_SCRIPT_CHARS, ScriptAgent, ScriptInput
from cinegen.agents.visual import VisualInput, VisualPromptAgent
from cinegen.models import Character, Scene

from conftest import FakeClient

PARSED = {
    "title": "The Heist",
    "genre": "Thriller",
    "logline": "A crew robs a vault.",
    "characters": [
        {"id": 1, "name": "Mara", "age": 34, "personality": "calm", "variations": [{"id": "v"}]},
        {"name": "no id"},
        "not an object",
    ],
    "scenes": [{"id": 1, "location": "Vault", "time": "Night", "atmosphere": None}],
    "storyParagraphs": [{"id": 1, "text": "Mara cracks the vault.", "sceneRefId": 1}],
}


def test_script_is_structured():
    client = FakeClient(["```json\n" + json.dumps(PARSED) + "\n```"])

    script = ScriptAgent(client).run(ScriptInput(text="INT. VAULT - NIGHT", language="French", target_duration="90s"))

    assert script.title == "The Heist"
    assert script.language == "French"
    assert script.target_duration == "90s"
    assert [c.id for c in script.characters] == ["1"]
    assert script.characters[0].age == "34"
    assert script.characters[0].variations == []
    assert script.scenes[0].id == "1"
    assert script.scenes[0].atmosphere == ""
    assert script.paragraphs_for(script.scenes[0])[0].text == "Mara cracks the vault."
    assert "language: French" in client.prompts[0]


def test_snake_case_paragraphs_are_accepted():
    body = {"story_paragraphs": [{"id": 2, "text": "x", "scene_ref_id": "s1"}]}
    script = ScriptAgent(FakeClient([json.dumps(body)])).run(ScriptInput(text="x"))
    assert script.story_paragraphs[0].scene_ref_id == "s1"


def test_malformed_output_gives_defaults():
    script = ScriptAgent(FakeClient(["I cannot help with that."])).run(ScriptInput(text="x"))

    assert script.title == "Untitled Script"
    assert script.genre == "General"
    assert script.characters == []
    assert script.scenes == []


def test_non_object_output_gives_defaults():
    script = ScriptAgent(FakeClient(["[1, 2]"])).run(ScriptInput(text="x"))
    assert script.title == "Untitled Script"


def test_long_text_is_truncated():
    client = FakeClient(["{}"])
    ScriptAgent(client).run(ScriptInput(text="a" * (MAX_SCRIPT_CHARS + 500)))

    assert "a" * MAX_SCRIPT_CHARS in client.prompts[0]
    assert "a" * (MAX_SCRIPT_CHARS + 1) not in client.prompts[0]


def test_visual_prompt_for_character():
    client = FakeClient(["  grey coat, rim light, 35mm  \n"])
    character = Character(id="c1", name="Mara", personality="calm", image_url="http://x")

    prompt = VisualPromptAgent(client).run(VisualInput(subject=character, genre="Noir"))

    assert prompt == "grey coat, rim light, 35mm"
    assert "for a character in a Noir movie" in client.prompts[0]
    assert '"name": "Mara"' in client.prompts[0]
    assert "imageUrl" not in client.prompts[0]


def test_visual_prompt_for_scene():
    client = FakeClient(["wet rooftop"])
    VisualPromptAgent(client).run(VisualInput(subject=Scene(id="s1", location="Roof")))
    assert "for a scene in a General movie" in client.prompts[0]


def test_numeric_text_fields_keep_the_item():
    body = {
        "characters": [{"id": 1, "name": "Mara", "personality": 7}],
        "scenes": [{"id": 1, "location": "Vault", "time": 1985, "atmosphere": 0.5}],
        "storyParagraphs": [{"id": 1, "text": 42, "sceneRefId": 1}],
    }

    script = ScriptAgent(FakeClient([json.dumps(body)])).run(ScriptInput(text="x"))

    assert script.characters[0].personality == "7"
    assert script.scenes[0].time == "1985"
    assert script.scenes[0].atmosphere == "0.5"
    assert script.story_paragraphs[0].text == "42"
    assert script.paragraphs_for(script.scenes[0])[0].text == "42"
