import logging
from enum import Enum
from typing import Any, Dict, Optional

from session.prefs import Preferences

logger = logging.getLogger("i18n")

SELECTED_LANGUAGE_KEY = "selectedLanguage"


class Language(str, Enum):
    ENGLISH = "en"
    FRENCH = "fr"

    @property
    def display_name(self) -> str:
        return "English" if self is Language.ENGLISH else "Français"


STRINGS: Dict[Language, Dict[str, str]] = {
    Language.ENGLISH: {
        "app_title": "Haute Vision",
        "welcome_to_haute_vision": "Welcome to Haute Vision!",
        "onboarding_body": "Track your eye health between visits: pressure, imaging results and injections, all in one place.",
        "get_started": "Get Started",
        "hello": "Hello",
        "home": "Home",
        "my_health": "My Health",
        "profile": "Profile",
        "settings": "Settings",
        "language": "Language",
        "english": "English",
        "french": "Français",
        "sign_in": "Sign In",
        "sign_up": "Sign Up",
        "sign_out": "Sign Out",
        "email": "Email",
        "password": "Password",
        "full_name": "Full Name",
        "forgot_password": "Forgot password?",
        "reset_email_sent": "Password reset email sent.",
        "change_password": "Change Password",
        "current_password": "Current Password",
        "new_password": "New Password",
        "password_changed": "Password changed.",
        "delete_account": "Delete Account",
        "delete_account_confirmation": "This permanently deletes your account and profile.",
        "reset_onboarding": "Reset Onboarding",
        "save": "Save",
        "update": "Update",
        "delete": "Delete",
        "cancel": "Cancel",
        "edited": "Edited",
        "notes": "Notes",
        "no_measurements": "No Measurements",
        "glaucoma": "Glaucoma",
        "retinal_injections": "Retinal Injections",
        "keratoconus": "Keratoconus",
        "corneal_transplant": "Corneal Transplant",
        "right_eye": "Right Eye",
        "left_eye": "Left Eye",
        "iop": "IOP",
        "iop_time": "IOP Time",
        "mean_defect": "Mean Defect (MD)",
        "pattern_standard_deviation": "Pattern Standard Deviation (PSD)",
        "rnfl": "RNFL",
        "rnfl_superior": "RNFL Superior",
        "rnfl_inferior": "RNFL Inferior",
        "macular_gcc": "Macular GCC",
        "visual_field_change": "Visual Field Change",
        "rnfl_change": "RNFL Change",
        "family_history": "Family History",
        "lasik_surgery": "LASIK Surgery",
        "new_eye_drops": "New Eye Drops",
        "eye_drops_details": "Eye Drops Details",
        "medication": "Medication",
        "new_medication": "New medication",
        "vision": "Vision",
        "crt": "CRT",
        "reminder_date": "Reminder Date",
        "next_reminder": "Next reminder: {date}",
        "medication_reminder": "Medication Reminder",
        "time_to_take_medication": "It's time to take your medication: {medication}",
        "reminder_every_hours": "Remind me every (hours)",
        "reminder_scheduled": "Reminder scheduled.",
        "reminders_cancelled": "Reminders cancelled.",
        "must_be_logged_in_add": "You must be logged in to add measurements",
        "failed_to_fetch_measurements": "Failed to fetch measurements:",
        "failed_to_add_measurement": "Failed to add measurement:",
        "failed_to_delete_measurement": "Failed to delete measurement:",
        "k2": "K2",
        "k_max": "Kmax",
        "thinnest_pachymetry": "Thinnest Pachymetry",
        "thickest_epithelial_spot": "Thickest Epithelial Spot",
        "thinnest_epithelial_spot": "Thinnest Epithelial Spot",
        "risk_score": "Risk Score",
        "cylindrical_increase": "Documented Cylindrical Increase",
        "vision_loss": "Subjective Vision Loss",
        "cross_linking": "Cross-Linking",
        "ecd": "ECD",
        "pachymetry": "Pachymetry",
        "regraft": "Regraft",
        "steroid_regimen": "Steroid Regimen",
        "medication_name": "Medication Name",
        "time_since_transplant": "Time since transplant",
        "visit_date": "Visit Date",
        "add_measurement": "Add Measurement",
        "measurement_saved": "Measurement saved.",
        "reminders": "Reminders",
        "frequency": "Frequency",
        "daily": "Daily",
        "weekly": "Weekly",
        "monthly": "Monthly",
        "other": "Other",
        "weekdays": "Days of the week",
        "pending_reminders": "Pending reminders",
    },
    Language.FRENCH: {
        "app_title": "Haute Vision",
        "welcome_to_haute_vision": "Bienvenue chez Haute Vision !",
        "onboarding_body": "Suivez la santé de vos yeux entre les visites : pression, imagerie et injections, au même endroit.",
        "get_started": "Commencer",
        "hello": "Bonjour",
        "home": "Accueil",
        "my_health": "Ma Santé",
        "profile": "Profil",
        "settings": "Paramètres",
        "language": "Langue",
        "english": "English",
        "french": "Français",
        "sign_in": "Se connecter",
        "sign_up": "S'inscrire",
        "sign_out": "Se déconnecter",
        "email": "Courriel",
        "password": "Mot de passe",
        "full_name": "Nom Complet",
        "forgot_password": "Mot de passe oublié ?",
        "reset_email_sent": "Courriel de réinitialisation envoyé.",
        "change_password": "Changer le mot de passe",
        "current_password": "Mot de passe actuel",
        "new_password": "Nouveau mot de passe",
        "password_changed": "Mot de passe modifié.",
        "delete_account": "Supprimer le compte",
        "delete_account_confirmation": "Cette action supprime définitivement votre compte et votre profil.",
        "reset_onboarding": "Réinitialiser l'introduction",
        "save": "Enregistrer",
        "update": "Mettre à Jour",
        "delete": "Supprimer",
        "cancel": "Annuler",
        "edited": "Modifié",
        "notes": "Notes",
        "no_measurements": "Aucune Mesure",
        "glaucoma": "Glaucome",
        "retinal_injections": "Injections Rétiniennes",
        "keratoconus": "Kératocône",
        "corneal_transplant": "Greffe de Cornée",
        "right_eye": "Œil Droit",
        "left_eye": "Œil Gauche",
        "iop": "PIO",
        "iop_time": "Heure de la PIO",
        "mean_defect": "Défaut Moyen (DM)",
        "pattern_standard_deviation": "Déviation Standard du Modèle (DSM)",
        "rnfl": "CFNR",
        "rnfl_superior": "CFNR Supérieure",
        "rnfl_inferior": "CFNR Inférieure",
        "macular_gcc": "GCC Maculaire",
        "visual_field_change": "Changement du Champ Visuel",
        "rnfl_change": "Changement CFNR",
        "family_history": "Antécédents Familiaux",
        "lasik_surgery": "Chirurgie LASIK",
        "new_eye_drops": "Nouvelles Gouttes Oculaires",
        "eye_drops_details": "Détails des Gouttes Oculaires",
        "medication": "Médicament",
        "new_medication": "Nouveau médicament",
        "vision": "Vision",
        "crt": "ERC",
        "reminder_date": "Date de Rappel",
        "next_reminder": "Prochain rappel : {date}",
        "medication_reminder": "Rappel de Médicament",
        "time_to_take_medication": "Il est temps de prendre votre médicament : {medication}",
        "reminder_every_hours": "Me le rappeler toutes les (heures)",
        "reminder_scheduled": "Rappel programmé.",
        "reminders_cancelled": "Rappels annulés.",
        "must_be_logged_in_add": "Vous devez être connecté pour ajouter des mesures",
        "failed_to_fetch_measurements": "Échec de la récupération des mesures :",
        "failed_to_add_measurement": "Échec de l'ajout de la mesure :",
        "failed_to_delete_measurement": "Échec de la suppression de la mesure :",
        "k2": "K2",
        "k_max": "Kmax",
        "thinnest_pachymetry": "Pachymétrie la plus Mince",
        "thickest_epithelial_spot": "Point Épithélial le plus Épais",
        "thinnest_epithelial_spot": "Point Épithélial le plus Mince",
        "risk_score": "Score de Risque",
        "cylindrical_increase": "Augmentation Cylindrique Documentée",
        "vision_loss": "Perte de Vision Subjective",
        "cross_linking": "Réticulation",
        "ecd": "DCE",
        "pachymetry": "Pachymétrie",
        "regraft": "Regreffe",
        "steroid_regimen": "Régime de Stéroïdes",
        "medication_name": "Nom du Médicament",
        "time_since_transplant": "Temps depuis la greffe",
        "visit_date": "Date de Visite",
        "add_measurement": "Ajouter une Mesure",
        "measurement_saved": "Mesure enregistrée.",
        "reminders": "Rappels",
        "frequency": "Fréquence",
        "daily": "Quotidien",
        "weekly": "Hebdomadaire",
        "monthly": "Mensuel",
        "other": "Autre",
        "weekdays": "Jours de la semaine",
        "pending_reminders": "Rappels en attente",
    },
}


def localized_string(key: str, language: Language, **params: Any) -> str:
    text = STRINGS.get(language, {}).get(key) or STRINGS[Language.ENGLISH].get(key) or key
    for name, value in params.items():
        text = text.replace("{" + name + "}", str(value))
    return text


class LocalizationManager:
    """Current UI language, persisted under ``selectedLanguage``."""

    def __init__(self, prefs: Preferences):
        self.prefs = prefs
        saved = prefs.get_str(SELECTED_LANGUAGE_KEY) or Language.ENGLISH.value
        try:
            self._language = Language(saved)
        except ValueError:
            self._language = Language.ENGLISH

    @property
    def current_language(self) -> Language:
        return self._language

    def set_language(self, language: Language) -> None:
        self._language = language
        self.prefs.set(SELECTED_LANGUAGE_KEY, language.value)
        logger.info("language_changed language=%s", language.value)

    def toggle_language(self) -> None:
        self.set_language(Language.FRENCH if self._language is Language.ENGLISH else Language.ENGLISH)

    def localized(self, key: str, language: Optional[Language] = None, **params: Any) -> str:
        return localized_string(key, language or self._language, **params)
