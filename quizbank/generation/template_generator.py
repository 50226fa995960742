"""
Template Generator: Deterministic Question Fallback.

Produces multiple-choice questions without any model call. Used when no
provider is configured or every provider failed.

Rules:
1. Detect the subject from keywords in the objective text
2. Draw questions from the subject pool
3. Fill the remainder with generic concept templates built from key terms

Design Philosophy:
- Deterministic: same (objective, difficulty, count) always yields the same questions
- Fast: no network, pure lookup and string formatting
- Conservative: returns fewer questions rather than repeating one
"""

from __future__ import annotations

import hashlib
import random
import re

from .schemas import RawQuestion

# =============================================================================
# Subject Detection
# =============================================================================

SUBJECT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "biology": ("cell", "biology", "organism", "dna", "organelle", "photosynthesis", "mitosis"),
    "math": ("algebra", "equation", "variable", "solve", "expression", "linear", "slope"),
    "chemistry": ("chemistry", "element", "compound", "atom", "molecule", "reaction"),
    "history": ("history", "war", "revolution", "century", "empire"),
}

STOPWORDS = frozenset(
    {
        "about", "after", "apply", "based", "being", "between", "describe", "explain",
        "their", "these", "those", "understand", "using", "which", "while", "with",
        "identify", "students", "should", "able", "other", "within", "through",
        "demonstrate", "recognize", "define", "simple", "basic",
    }
)


# =============================================================================
# Subject Pools
# =============================================================================

_Q = tuple[str, str, tuple[str, str, str], str]

BIOLOGY_POOL: tuple[_Q, ...] = (
    (
        "What is the primary function of the cell membrane?",
        "To control what enters and exits the cell",
        ("To produce energy for the cell", "To store the cell's genetic material", "To manufacture proteins"),
        "The cell membrane is a selective barrier that controls the passage of substances in and out of the cell.",
    ),
    (
        "Which process allows plants to convert sunlight into chemical energy?",
        "Photosynthesis",
        ("Cellular respiration", "Fermentation", "Glycolysis"),
        "Photosynthesis uses chlorophyll to capture sunlight and convert it into glucose and oxygen.",
    ),
    (
        "What type of organism is characterized by having no nucleus?",
        "Prokaryote",
        ("Eukaryote", "Virus", "Fungus"),
        "Prokaryotes, such as bacteria, lack a membrane-bound nucleus.",
    ),
    (
        "Which organelle is known as the 'powerhouse of the cell'?",
        "Mitochondria",
        ("Nucleus", "Ribosome", "Golgi apparatus"),
        "Mitochondria generate most of the cell's ATP through cellular respiration.",
    ),
    (
        "What is the basic unit of heredity?",
        "Gene",
        ("Chromosome", "DNA molecule", "Protein"),
        "A gene is a sequence of DNA that codes for a trait and is passed from parents to offspring.",
    ),
    (
        "During which phase of mitosis do chromosomes align at the cell's equator?",
        "Metaphase",
        ("Prophase", "Anaphase", "Telophase"),
        "During metaphase, chromosomes line up at the metaphase plate before being separated.",
    ),
    (
        "What is the role of ribosomes in the cell?",
        "Protein synthesis",
        ("Energy production", "DNA replication", "Waste removal"),
        "Ribosomes translate mRNA into proteins.",
    ),
    (
        "Which of the following is a characteristic of bacteria?",
        "They are prokaryotic",
        ("They have a nucleus", "They are multicellular", "They reproduce sexually"),
        "Bacteria are single-celled prokaryotes without a membrane-bound nucleus.",
    ),
    (
        "During cellular respiration, what happens?",
        "Glucose is broken down to release energy",
        ("Glucose is created", "Oxygen is produced", "Carbon dioxide is absorbed"),
        "Cellular respiration breaks glucose down and stores the released energy as ATP.",
    ),
)

MATH_POOL: tuple[_Q, ...] = (
    (
        "Solve for x: 3x + 7 = 22",
        "x = 5",
        ("x = 3", "x = 7", "x = 15"),
        "Subtract 7 from both sides: 3x = 15, then divide by 3: x = 5.",
    ),
    (
        "What is the slope of the line passing through points (2, 4) and (6, 12)?",
        "2",
        ("3", "4", "1/2"),
        "Using the slope formula: (12 - 4) / (6 - 2) = 8 / 4 = 2.",
    ),
    (
        "Simplify: 4x + 3x - 2x",
        "5x",
        ("9x", "3x", "x"),
        "Combine like terms: (4 + 3 - 2)x = 5x.",
    ),
    (
        "If y = 2x + 3, what is the y-intercept?",
        "3",
        ("2", "-3", "0"),
        "In the form y = mx + b, the y-intercept is b, which is 3.",
    ),
    (
        "Solve for x: 2x - 8 = 10",
        "x = 9",
        ("x = 1", "x = 18", "x = 2"),
        "Add 8 to both sides: 2x = 18, then divide by 2: x = 9.",
    ),
    (
        "Simplify the expression: 2(x + 3)",
        "2x + 6",
        ("2x + 3", "5x", "x + 6"),
        "Distribute the 2 across both terms inside the parentheses.",
    ),
    (
        "If Sarah has 7 apples and buys 4 more, how many apples does she have in total?",
        "11",
        ("3", "28", "7"),
        "Add the initial amount (7) to the additional amount (4) to get the total.",
    ),
)

CHEMISTRY_POOL: tuple[_Q, ...] = (
    (
        "What is the chemical symbol for Gold?",
        "Au",
        ("Go", "Gd", "Ag"),
        "Gold's symbol Au comes from its Latin name 'aurum'.",
    ),
    (
        "How many electrons does a neutral carbon atom have?",
        "6",
        ("4", "12", "8"),
        "Carbon has atomic number 6, so a neutral atom has 6 protons and 6 electrons.",
    ),
    (
        "What type of bond is formed when electrons are shared between atoms?",
        "Covalent bond",
        ("Ionic bond", "Metallic bond", "Hydrogen bond"),
        "Covalent bonds form when atoms share electrons to reach stable configurations.",
    ),
    (
        "What is the chemical symbol for Hydrogen?",
        "H",
        ("He", "Hy", "Hg"),
        "Hydrogen is the first element of the periodic table and uses the symbol H.",
    ),
    (
        "In the reaction 2H2 + O2 -> 2H2O, what type of reaction is this?",
        "Synthesis reaction",
        ("Decomposition reaction", "Single replacement", "Double replacement"),
        "Two reactants combine into a single product, which defines a synthesis reaction.",
    ),
)

HISTORY_POOL: tuple[_Q, ...] = (
    (
        "In which century did the American Revolution occur?",
        "18th century",
        ("17th century", "19th century", "16th century"),
        "The American Revolution took place from 1775 to 1783.",
    ),
    (
        "In which century did World War I occur?",
        "20th century",
        ("19th century", "21st century", "18th century"),
        "World War I was fought from 1914 to 1918.",
    ),
    (
        "What was a major cause of the American Revolution?",
        "Taxation without representation",
        ("Religious persecution", "Territorial expansion", "Trade disputes with France"),
        "Colonists objected to being taxed by a parliament in which they had no representatives.",
    ),
)

SUBJECT_POOLS: dict[str, tuple[_Q, ...]] = {
    "biology": BIOLOGY_POOL,
    "math": MATH_POOL,
    "chemistry": CHEMISTRY_POOL,
    "history": HISTORY_POOL,
}

# {concept} is substituted with a key term from the objective
GENERIC_TEMPLATES: tuple[tuple[str, str, tuple[str, str, str], str], ...] = (
    (
        "What is the definition of {concept}?",
        "The accurate definition of {concept}",
        (
            "A partial definition of {concept}",
            "A common misconception about {concept}",
            "An unrelated concept to {concept}",
        ),
        "This definition captures the essential meaning and key characteristics of {concept}.",
    ),
    (
        "Which example best demonstrates {concept}?",
        "A clear example of {concept}",
        (
            "An example that seems related but is not {concept}",
            "A common confusion with {concept}",
            "An opposite example to {concept}",
        ),
        "A good example shows {concept} directly rather than something that only resembles it.",
    ),
    (
        "Which statement about {concept} is most accurate?",
        "A statement consistent with how {concept} works",
        (
            "A statement that reverses how {concept} works",
            "A statement about a different topic than {concept}",
            "A statement that is only true in rare cases of {concept}",
        ),
        "Only one statement is consistent with the core idea of {concept}.",
    ),
    (
        "Why is {concept} important in this topic?",
        "It explains a key idea the topic depends on",
        (
            "It is only a historical footnote",
            "It has no connection to the rest of the topic",
            "It replaces every other idea in the topic",
        ),
        "{concept} matters because other ideas in the topic build on it.",
    ),
)


def detect_subject(objective_text: str) -> str:
    """Detect the subject area of an objective from keywords."""
    text = objective_text.lower()
    for subject, keywords in SUBJECT_KEYWORDS.items():
        if any(keyword in text for keyword in keywords):
            return subject
    return "generic"


def extract_key_terms(objective_text: str, limit: int = 3) -> list[str]:
    """Pick the longest meaningful words of the objective as concepts."""
    words = re.findall(r"[A-Za-z][A-Za-z\-']+", objective_text)
    seen: set[str] = set()
    terms: list[str] = []
    for word in sorted(words, key=len, reverse=True):
        lowered = word.lower()
        if len(lowered) < 5 or lowered in STOPWORDS or lowered in seen:
            continue
        seen.add(lowered)
        terms.append(lowered)
        if len(terms) >= limit:
            break
    if not terms:
        terms.append(objective_text.strip().rstrip(".") or "this topic")
    return terms


class TemplateQuestionGenerator:
    """Deterministic fallback generator."""

    name = "template"

    def _seed(self, objective_text: str, difficulty: float, count: int) -> int:
        """Create a reproducible integer seed from the request."""
        key = f"{objective_text}:{difficulty:.2f}:{count}"
        hash_bytes = hashlib.sha256(key.encode()).digest()
        return int.from_bytes(hash_bytes[:8], byteorder="big")

    def generate(self, objective_text: str, difficulty: float, count: int) -> list[RawQuestion]:
        """
        Generate up to `count` questions for an objective.

        Args:
            objective_text: Learning objective text
            difficulty: Difficulty level (0-1)
            count: Number of questions requested

        Returns:
            List of RawQuestion, length min(count, available templates)
        """
        if count <= 0:
            return []

        rng = random.Random(self._seed(objective_text, difficulty, count))
        subject = detect_subject(objective_text)

        pool = list(SUBJECT_POOLS.get(subject, ()))
        rng.shuffle(pool)
        selected = pool[:count]

        questions = [self._to_raw(item) for item in selected]

        remaining = count - len(questions)
        if remaining > 0:
            generic = [
                self._fill(template, concept)
                for concept in extract_key_terms(objective_text)
                for template in GENERIC_TEMPLATES
            ]
            questions.extend(generic[:remaining])

        return questions

    @staticmethod
    def _to_raw(item: _Q) -> RawQuestion:
        question, answer, distractors, explanation = item
        return RawQuestion(
            question=question,
            correct_answer=answer,
            distractors=list(distractors),
            explanation=explanation,
        )

    @staticmethod
    def _fill(template: _Q, concept: str) -> RawQuestion:
        question, answer, distractors, explanation = template
        return RawQuestion(
            question=question.format(concept=concept),
            correct_answer=answer.format(concept=concept),
            distractors=[d.format(concept=concept) for d in distractors],
            explanation=explanation.format(concept=concept),
        )
