"""
Somatic Questionnaire Table

Twenty stress-response and body-awareness questions. Each option carries a
scoring vector over the four patterns; "balanced" answers subtract a point
from every pattern.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from somatic_scan.core.inference.patterns import PatternKey

QUESTIONNAIRE_VERSION = "1.0"

UP = PatternKey.UPPER_COMPRESSION
LO = PatternKey.LOWER_COMPRESSION
TH = PatternKey.THORACIC_COLLAPSE
LA = PatternKey.LATERAL_ASYMMETRY


def _all(points: int) -> Dict[PatternKey, int]:
    return {key: points for key in PatternKey}


@dataclass(frozen=True)
class QuestionOption:
    """One answer choice with its per-pattern points."""
    label: str
    text: str
    scoring: Dict[PatternKey, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "text": self.text,
            "scoring": {key.value: points for key, points in self.scoring.items()},
        }


@dataclass(frozen=True)
class Question:
    """A questionnaire item."""
    id: int
    question: str
    options: Tuple[QuestionOption, ...]

    def option(self, label: str) -> Optional[QuestionOption]:
        for opt in self.options:
            if opt.label == label:
                return opt
        return None

    @property
    def labels(self) -> List[str]:
        return [opt.label for opt in self.options]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "options": [opt.to_dict() for opt in self.options],
        }


def _q(qid: int, text: str, *options: Tuple[str, Dict[PatternKey, int]]) -> Question:
    labels = "ABCD"
    return Question(
        id=qid,
        question=text,
        options=tuple(
            QuestionOption(label=labels[i], text=opt_text, scoring=scoring)
            for i, (opt_text, scoring) in enumerate(options)
        ),
    )


QUESTIONNAIRE: Tuple[Question, ...] = (
    _q(1, "When unexpected stress hits, your body's first reaction is:",
       ("Lock up - Jaw clenches, shoulders rise, breath stops", {UP: 3}),
       ("Push through - Adrenaline kicks in, you go into action mode", {LO: 2, UP: 1}),
       ("Shut down - Energy drops, you go blank or numb", {TH: 3}),
       ("Oscillate - Ping-pong between wired and exhausted", _all(1))),
    _q(2, "After a stressful day, you typically:",
       ("Can't turn off - Mind races, body feels wired", {UP: 3}),
       ("Crash hard - Collapse on the couch, can't do anything", {TH: 3}),
       ("Need intense movement - Run, workout, release energy", {LO: 2}),
       ("Don't really feel it - Disconnected from your body", {LA: 2})),
    _q(3, "Your relationship with rest is:",
       ("I have to earn it - Can't relax unless everything's done", {UP: 2, LO: 1}),
       ("I crave it but can't access it - Tired but wired", {UP: 3}),
       ("I can drop in fairly easily - Rest feels restorative", _all(-1)),
       ("I avoid it - Stillness feels uncomfortable", {LO: 2})),
    _q(4, "When someone says \"just breathe,\" you:",
       ("Feel frustrated - That doesn't work for me", {UP: 2, TH: 1}),
       ("Try harder - Force deep breaths that don't help", {UP: 2}),
       ("Can actually use it - Breathing helps me regulate", _all(-1)),
       ("Feel more anxious - Deep breathing makes it worse", {TH: 3})),
    _q(5, "Your typical energy pattern throughout the day:",
       ("Steady and sustainable - Relatively consistent", _all(-1)),
       ("Starts high, crashes hard - Morning energy, afternoon collapse", {UP: 2, LO: 1}),
       ("Low all day - Never fully awake", {TH: 3}),
       ("All over the place - Unpredictable peaks and crashes", {LA: 2})),
    _q(6, "When you feel emotion rising, you:",
       ("Suppress it immediately - Push it down, stay composed", {UP: 3}),
       ("Feel it intensely - Cry, rage, or release fully", {TH: 1}),
       ("Go numb - Can't access the feeling", {TH: 3}),
       ("Get overwhelmed - It floods and takes over", {UP: 1, TH: 1})),
    _q(7, "Your sleep pattern is:",
       ("Hard to fall asleep, hard to wake up - Never feel rested", {LO: 2, UP: 1}),
       ("Fall asleep exhausted, wake up wired - Broken sleep", {UP: 3}),
       ("Generally restorative - Wake feeling refreshed", _all(-1)),
       ("Inconsistent - Some nights good, some terrible", {LA: 2})),
    _q(8, "In social situations, your body tends to:",
       ("Stay on alert - Scanning, monitoring, performing", {UP: 3}),
       ("Need recovery time after - People exhaust you", {TH: 2}),
       ("Feel energized - Connection fills you up", _all(-1)),
       ("Disconnect - You're there but not really present", {LA: 2})),
    _q(9, "Your relationship with your body is:",
       ("Functional - It's a tool to get things done", {UP: 2, LO: 1}),
       ("Adversarial - It betrays me, doesn't cooperate", {LO: 2, TH: 1}),
       ("Trustworthy - I listen to it and it guides me", _all(-1)),
       ("Disconnected - I don't really feel it", {LA: 3})),
    _q(10, "Where do you feel tension most often?",
       ("Neck, jaw, or head", {UP: 3}),
       ("Lower back, hips, or knees", {LO: 3}),
       ("Upper back, chest, or shoulders", {TH: 3}),
       ("One side of my body more than the other", {LA: 3})),
    _q(11, "When you sit for extended periods, what happens?",
       ("My head/neck juts forward, shoulders hunch", {UP: 2}),
       ("My lower back arches or I slump into my pelvis", {LO: 2}),
       ("My upper back rounds forward", {TH: 2}),
       ("I lean or shift to one side", {LA: 2})),
    _q(12, "How would you describe your breathing pattern?",
       ("Shallow, mostly in my chest", {UP: 2, TH: 1}),
       ("I hold my breath or sigh frequently", {UP: 2}),
       ("I feel like I can't take a full deep breath", {TH: 3}),
       ("My breathing feels uneven or asymmetrical", {LA: 2})),
    _q(13, "Do you experience regular pain, stiffness, or compression in joints?",
       ("Neck, jaw, or headaches", {UP: 2}),
       ("Lower back, SI joint, or knee pain", {LO: 2}),
       ("Upper back, between shoulder blades", {TH: 2}),
       ("One-sided pain patterns", {LA: 3})),
    _q(14, "How do your feet feel when standing?",
       ("I don't notice them much / balanced", _all(-1)),
       ("My arches feel collapsed or flat", {LO: 2}),
       ("I shift weight to my toes", {UP: 1}),
       ("I favor one foot over the other", {LA: 3})),
    _q(15, "Which movement is most restricted for you?",
       ("Looking up or extending my neck", {UP: 2}),
       ("Bending forward or touching my toes", {LO: 2}),
       ("Reaching overhead or opening my chest", {TH: 3}),
       ("Rotating or side-bending", {LA: 3})),
    _q(16, "Do you have a dominant side you favor?",
       ("Yes, significantly", {LA: 3}),
       ("Somewhat", {LA: 1}),
       ("No, I'm fairly balanced", {LA: -1})),
    _q(17, "How do you feel about back-bending or opening your chest?",
       ("Very difficult, uncomfortable, or scary", {TH: 3}),
       ("Somewhat challenging", {TH: 1}),
       ("Comfortable and natural", {TH: -1})),
    _q(18, "When you squat, what happens?",
       ("My heels lift, can't go deep", {LO: 2}),
       ("My knees collapse inward", {LO: 2}),
       ("My lower back rounds excessively", {TH: 1}),
       ("Squats feel relatively comfortable", _all(-1))),
    _q(19, "Do you feel coordinated in your movement?",
       ("Yes, I move fluidly", _all(-1)),
       ("Sometimes clumsy or uncoordinated", {LA: 2}),
       ("My left and right sides feel very different", {LA: 3})),
    _q(20, "If you could change one thing about how your body responds to stress, it would be:",
       ("Stop holding tension everywhere - Let go physically", {UP: 2}),
       ("Actually feel calm - Not just fake it", {UP: 2}),
       ("Have consistent energy - Stop the crashes", {LO: 2, TH: 1}),
       ("Reconnect - Feel present in my body", {LA: 2})),
)

QUESTION_COUNT = len(QUESTIONNAIRE)
