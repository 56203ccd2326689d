"""
Persisted layout of the remote document store.

    users/{uid}                              profile
    users/{uid}/transactions/*
    users/{uid}/budgets/*
    users/{uid}/recurringTransactions/*
    users/{uid}/goals/*
    users/{uid}/settings/preferences
    users/{uid}/categories/list
    families/{familyId}                      family + embedded member map
    families/{familyId}/transactions/*
    families/{familyId}/budgets/*
    familyInvitations/*
"""

USERS = "users"
FAMILIES = "families"
FAMILY_INVITATIONS = "familyInvitations"

TRANSACTIONS = "transactions"
BUDGETS = "budgets"
RECURRING = "recurringTransactions"
GOALS = "goals"
SETTINGS = "settings"
CATEGORIES = "categories"

SETTINGS_DOC = "preferences"
CATEGORIES_DOC = "list"

# Per-user collections removed by "clear all data"
PERSONAL_COLLECTIONS = (TRANSACTIONS, BUDGETS, RECURRING, GOALS, SETTINGS, CATEGORIES)


def profile(uid: str) -> str:
    return f"{USERS}/{uid}"


def user_collection(uid: str, name: str) -> str:
    return f"{USERS}/{uid}/{name}"


def user_settings(uid: str) -> str:
    return f"{USERS}/{uid}/{SETTINGS}/{SETTINGS_DOC}"


def user_categories(uid: str) -> str:
    return f"{USERS}/{uid}/{CATEGORIES}/{CATEGORIES_DOC}"


def family(family_id: str) -> str:
    return f"{FAMILIES}/{family_id}"


def family_collection(family_id: str, name: str) -> str:
    return f"{FAMILIES}/{family_id}/{name}"


def invitation(invitation_id: str) -> str:
    return f"{FAMILY_INVITATIONS}/{invitation_id}"


def join(collection_path: str, doc_id: str) -> str:
    return f"{collection_path}/{doc_id}"
