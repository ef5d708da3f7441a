"""Conjugation rule catalog.

The ordered curriculum of verb rules a learner unlocks one by one,
from regular present -AR verbs through the irregular present subjunctive.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

RuleCategory = Literal["regular", "stem-changing", "irregular", "yo-irregular"]

TENSES = (
    "present",
    "preterite",
    "imperfect",
    "future",
    "conditional",
    "present_subjunctive",
)

# A rule counts as mastered after this many recent attempts at this accuracy
MASTERY_WINDOW = 20
MASTERY_ACCURACY = 0.9

TENSE_ICONS: dict[str, str] = {
    "present": "🗣️",
    "preterite": "✅",
    "imperfect": "📖",
    "future": "🔮",
    "conditional": "🤔",
    "present_subjunctive": "🎭",
}


@dataclass(frozen=True)
class ConjugationRule:
    """A single rule of the curriculum."""

    id: str
    name: str
    description: str
    category: RuleCategory
    tenses: list[str]
    order: int
    examples: list[str] = field(default_factory=list)
    icon: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "tenses": list(self.tenses),
            "order": self.order,
            "examples": list(self.examples),
            "icon": self.icon,
        }


CONJUGATION_RULES: list[ConjugationRule] = [
    # Regular present
    ConjugationRule(
        id="regular-present-ar",
        name="Regular -AR Verbs (Present)",
        description="Regular -AR verbs in present tense: drop -ar and add endings (-o, -as, -a, -amos, -áis, -an)",
        category="regular",
        tenses=["present"],
        order=1,
        examples=["hablar → hablo, hablas, habla", "caminar → camino, caminas, camina"],
        icon="🗣️",
    ),
    ConjugationRule(
        id="regular-present-er",
        name="Regular -ER Verbs (Present)",
        description="Regular -ER verbs in present tense: drop -er and add endings (-o, -es, -e, -emos, -éis, -en)",
        category="regular",
        tenses=["present"],
        order=2,
        examples=["comer → como, comes, come", "beber → bebo, bebes, bebe"],
        icon="🍽️",
    ),
    ConjugationRule(
        id="regular-present-ir",
        name="Regular -IR Verbs (Present)",
        description="Regular -IR verbs in present tense: drop -ir and add endings (-o, -es, -e, -imos, -ís, -en)",
        category="regular",
        tenses=["present"],
        order=3,
        examples=["vivir → vivo, vives, vive", "escribir → escribo, escribes, escribe"],
        icon="✍️",
    ),
    # Common irregular present
    ConjugationRule(
        id="ser-estar-present",
        name="Ser & Estar (Present)",
        description="The most important irregular verbs: ser (to be permanent) and estar (to be temporary)",
        category="irregular",
        tenses=["present"],
        order=4,
        examples=["ser → soy, eres, es", "estar → estoy, estás, está"],
        icon="🫰",
    ),
    ConjugationRule(
        id="ir-present",
        name="Ir (Present)",
        description='Irregular verb "ir" (to go): voy, vas, va, vamos, vais, van',
        category="irregular",
        tenses=["present"],
        order=5,
        examples=["ir → voy, vas, va, vamos, vais, van"],
        icon="🚶",
    ),
    # Yo-form irregulars
    ConjugationRule(
        id="go-verbs-present",
        name="Go-ending Yo Forms (Present)",
        description='Verbs where "yo" form ends in -go: tener→tengo, poner→pongo, salir→salgo, etc.',
        category="yo-irregular",
        tenses=["present"],
        order=6,
        examples=["tener → tengo", "poner → pongo", "salir → salgo", "venir → vengo"],
        icon="👉",
    ),
    ConjugationRule(
        id="zco-verbs-present",
        name="Zco-ending Yo Forms (Present)",
        description="Verbs ending in -cer/-cir after vowel: conocer→conozco, conducir→conduzco",
        category="yo-irregular",
        tenses=["present"],
        order=7,
        examples=["conocer → conozco", "conducir → conduzco", "traducir → traduzco"],
        icon="🧠",
    ),
    # Stem-changing
    ConjugationRule(
        id="e-ie-present",
        name="e→ie Stem Changes (Present)",
        description="Stem changes e→ie in present tense (all forms except nosotros/vosotros)",
        category="stem-changing",
        tenses=["present"],
        order=8,
        examples=["pensar → pienso, piensas, piensa", "querer → quiero, quieres, quiere"],
        icon="💭",
    ),
    ConjugationRule(
        id="o-ue-present",
        name="o→ue Stem Changes (Present)",
        description="Stem changes o→ue in present tense (all forms except nosotros/vosotros)",
        category="stem-changing",
        tenses=["present"],
        order=9,
        examples=["poder → puedo, puedes, puede", "dormir → duermo, duermes, duerme"],
        icon="💪",
    ),
    ConjugationRule(
        id="e-i-present",
        name="e→i Stem Changes (Present)",
        description="Stem changes e→i in present tense (all forms except nosotros/vosotros)",
        category="stem-changing",
        tenses=["present"],
        order=10,
        examples=["pedir → pido, pides, pide", "servir → sirvo, sirves, sirve"],
        icon="🙏",
    ),
    # Regular preterite
    ConjugationRule(
        id="regular-preterite-ar",
        name="Regular -AR Verbs (Preterite)",
        description="Regular -AR verbs in preterite (simple past): drop -ar and add endings (-é, -aste, -ó, -amos, -asteis, -aron)",
        category="regular",
        tenses=["preterite"],
        order=11,
        examples=["hablar → hablé, hablaste, habló", "caminar → caminé, caminaste, caminó"],
        icon="📅",
    ),
    ConjugationRule(
        id="regular-preterite-er-ir",
        name="Regular -ER/-IR Verbs (Preterite)",
        description="Regular -ER/-IR verbs in preterite: drop ending and add (-í, -iste, -ió, -imos, -isteis, -ieron)",
        category="regular",
        tenses=["preterite"],
        order=12,
        examples=["comer → comí, comiste, comió", "vivir → viví, viviste, vivió"],
        icon="✅",
    ),
    # Irregular preterite
    ConjugationRule(
        id="ir-ser-preterite",
        name="Ir & Ser (Preterite)",
        description="Ir and Ser have identical preterite forms: fui, fuiste, fue, fuimos, fuisteis, fueron",
        category="irregular",
        tenses=["preterite"],
        order=13,
        examples=["ir/ser → fui, fuiste, fue, fuimos, fuisteis, fueron"],
        icon="🔄",
    ),
    ConjugationRule(
        id="u-stem-preterite",
        name="U-stem Irregulars (Preterite)",
        description="Irregular preterite with U-stem: tener→tuve, estar→estuve, poder→pude, etc.",
        category="irregular",
        tenses=["preterite"],
        order=14,
        examples=["tener → tuve", "estar → estuve", "poder → pude", "poner → puse"],
        icon="🔧",
    ),
    ConjugationRule(
        id="i-stem-preterite",
        name="I-stem Irregulars (Preterite)",
        description="Irregular preterite with I-stem: hacer→hice, querer→quise, venir→vine",
        category="irregular",
        tenses=["preterite"],
        order=15,
        examples=["hacer → hice", "querer → quise", "venir → vine"],
        icon="⚡",
    ),
    # Imperfect
    ConjugationRule(
        id="regular-imperfect-ar",
        name="Regular -AR Verbs (Imperfect)",
        description="Regular -AR verbs in imperfect (ongoing past): drop -ar and add endings (-aba, -abas, -aba, -ábamos, -abais, -aban)",
        category="regular",
        tenses=["imperfect"],
        order=16,
        examples=["hablar → hablaba, hablabas, hablaba", "caminar → caminaba, caminabas, caminaba"],
        icon="🔄",
    ),
    ConjugationRule(
        id="regular-imperfect-er-ir",
        name="Regular -ER/-IR Verbs (Imperfect)",
        description="Regular -ER/-IR verbs in imperfect: drop ending and add (-ía, -ías, -ía, -íamos, -íais, -ían)",
        category="regular",
        tenses=["imperfect"],
        order=17,
        examples=["comer → comía, comías, comía", "vivir → vivía, vivías, vivía"],
        icon="📖",
    ),
    ConjugationRule(
        id="irregular-imperfect",
        name="Irregular Imperfect (Only 3!)",
        description="Only 3 irregular imperfect verbs: ir→iba, ser→era, ver→veía",
        category="irregular",
        tenses=["imperfect"],
        order=18,
        examples=["ir → iba, ibas, iba", "ser → era, eras, era", "ver → veía, veías, veía"],
        icon="3️⃣",
    ),
    # Future
    ConjugationRule(
        id="regular-future",
        name="Regular Future Tense",
        description="All regular verbs use infinitive + endings: -é, -ás, -á, -emos, -éis, -án",
        category="regular",
        tenses=["future"],
        order=19,
        examples=["hablar → hablaré", "comer → comeré", "vivir → viviré"],
        icon="🔮",
    ),
    ConjugationRule(
        id="irregular-future-stems",
        name="Irregular Future Stems",
        description="Some verbs have irregular stems but regular endings: tener→tendr-, salir→saldr-, etc.",
        category="irregular",
        tenses=["future"],
        order=20,
        examples=["tener → tendré", "salir → saldré", "venir → vendré", "poner → pondré"],
        icon="🎯",
    ),
    # Conditional
    ConjugationRule(
        id="regular-conditional",
        name="Regular Conditional",
        description="All regular verbs use infinitive + endings: -ía, -ías, -ía, -íamos, -íais, -ían",
        category="regular",
        tenses=["conditional"],
        order=21,
        examples=["hablar → hablaría", "comer → comería", "vivir → viviría"],
        icon="🤔",
    ),
    ConjugationRule(
        id="irregular-conditional-stems",
        name="Irregular Conditional Stems",
        description="Same irregular stems as future tense: tener→tendr-, salir→saldr-, etc.",
        category="irregular",
        tenses=["conditional"],
        order=22,
        examples=["tener → tendría", "salir → saldría", "venir → vendría", "poner → pondría"],
        icon="💭",
    ),
    # Present subjunctive
    ConjugationRule(
        id="regular-present-subjunctive",
        name="Regular Present Subjunctive",
        description="Take yo present form, drop -o, add opposite endings: -AR→-e,-es,-e,-emos,-éis,-en; -ER/IR→-a,-as,-a,-amos,-áis,-an",
        category="regular",
        tenses=["present_subjunctive"],
        order=23,
        examples=["hablar → hable, hables, hable", "comer → coma, comas, coma"],
        icon="🎭",
    ),
    ConjugationRule(
        id="irregular-present-subjunctive",
        name="Irregular Present Subjunctive",
        description="Stem-changing and yo-irregular verbs carry irregularities into subjunctive",
        category="irregular",
        tenses=["present_subjunctive"],
        order=24,
        examples=["tener → tenga", "conocer → conozca", "pensar → piense"],
        icon="🌟",
    ),
]


def rules_by_order() -> list[ConjugationRule]:
    """Catalog sorted by curriculum order (returns a new list)."""
    return sorted(CONJUGATION_RULES, key=lambda r: r.order)


def rules_by_category(category: str) -> list[ConjugationRule]:
    return [r for r in CONJUGATION_RULES if r.category == category]


def get_rule(rule_id: str) -> ConjugationRule | None:
    for rule in CONJUGATION_RULES:
        if rule.id == rule_id:
            return rule
    return None


def next_rule(unlocked_rule_ids: list[str] | set[str]) -> ConjugationRule | None:
    """First rule in order that is not yet unlocked, or None when all are."""
    unlocked = set(unlocked_rule_ids)
    for rule in rules_by_order():
        if rule.id not in unlocked:
            return rule
    return None


def first_rule() -> ConjugationRule:
    return rules_by_order()[0]
