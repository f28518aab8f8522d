# erapport/services/defaults.py - Built-in default template, evaluation types and seed labels
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from erapport.core.config import Settings, settings as app_settings
from erapport.schemas.report import CompetencyCategory, CompetencyOption, Template

DEFAULT_COMPETENCY_OPTIONS = [
    {
        "code": "OO1",
        "description": (
            "Définir la configuration des services du serveur nécessaires (service d’annuaire, "
            "DHCP, DNS, File, Print) conformément aux directives de l’entreprise."
        ),
    },
    {
        "code": "OO2",
        "description": "Installer et configurer les services réseau en appliquant les bonnes pratiques de sécurité.",
    },
    {
        "code": "OO3",
        "description": "Valider le fonctionnement des services déployés et documenter la configuration.",
    },
]

DEFAULT_COMPETENCIES = [
    {
        "category": "Active Directory",
        "items": [
            {
                "task": "Connait les principes théoriques et la terminologie associée au service et concepts d'annuaire",
                "competencyId": "OO1",
            },
            {
                "task": "Est capable d'installer le rôle Active Directory, de promouvoir un DC et de créer un admin du domaine",
                "competencyId": "OO2",
            },
            {
                "task": "Est capable de joindre des clients/serveurs au domaine",
                "competencyId": "OO3",
            },
        ],
    },
    {
        "category": "DNS",
        "items": [
            {
                "task": "Connait les principes théoriques, la terminologie et les outils liés aux services et concepts du DNS",
                "competencyId": "OO1",
            },
            {
                "task": "Connait les principes théoriques liés au déroulement d'une résolution DNS",
                "competencyId": "OO1",
            },
            {
                "task": "Est capable de configurer des zones de recherches directes et inverses",
                "competencyId": "OO2",
            },
            {
                "task": "Est capable de configurer des records dans des zones de recherches directes ou inverses et de les tester",
                "competencyId": "OO2",
            },
        ],
    },
    {
        "category": "DHCP",
        "items": [
            {
                "task": "Connait les principes théoriques et la terminologie associée aux services et concepts du DHCP",
                "competencyId": "OO1",
            },
            {
                "task": "Connait les principes théoriques liés au déroulement de l'attribution d'un bail DHCP",
                "competencyId": "OO1",
            },
            {
                "task": "Est capable d'installer, d'autoriser un service DHCP et de configurer un scope d'adresse et une réservation",
                "competencyId": "OO2",
            },
            {
                "task": "Est capable de configurer les options d'un scope et de tester l'attribution d'un bail à un client",
                "competencyId": "OO2",
            },
        ],
    },
]


class TemplateDefaults(BaseModel):
    """
    Process-wide defaults, built once at startup and handed to the services
    that need them (normalization, reconciliation fallbacks, seeding).
    """
    model_config = ConfigDict(frozen=True)

    evaluation_types: List[str] = Field(default_factory=lambda: ["E1", "E2", "E3"])
    school_year_labels: List[str] = Field(default_factory=lambda: ["2024-2025", "2025-2026"])
    template: Template

    @property
    def primary_evaluation_type(self) -> str:
        return self.evaluation_types[0]

    @property
    def default_school_year(self) -> str:
        return self.template.school_year

    def is_known_type(self, evaluation_type: str) -> bool:
        return evaluation_type in self.evaluation_types

    def type_index(self, evaluation_type: str) -> int:
        if evaluation_type in self.evaluation_types:
            return self.evaluation_types.index(evaluation_type)
        return len(self.evaluation_types)

    def fresh_template(self) -> Template:
        """Deep copy of the built-in template, safe to mutate"""
        return self.template.model_copy(deep=True)


def build_template_defaults(config: Optional[Settings] = None) -> TemplateDefaults:
    config = config or app_settings
    school_years = list(config.DEFAULT_SCHOOL_YEARS)
    template = Template(
        module_title=config.DEFAULT_MODULE_TITLE,
        school_year=school_years[0] if school_years else "",
        evaluation_type=config.EVALUATION_TYPES[0],
        competency_options=[CompetencyOption.model_validate(option) for option in DEFAULT_COMPETENCY_OPTIONS],
        competencies=[CompetencyCategory.model_validate(category) for category in DEFAULT_COMPETENCIES],
    )
    return TemplateDefaults(
        evaluation_types=list(config.EVALUATION_TYPES),
        school_year_labels=school_years,
        template=template,
    )


__all__ = [
    "TemplateDefaults",
    "build_template_defaults",
    "DEFAULT_COMPETENCY_OPTIONS",
    "DEFAULT_COMPETENCIES",
]
