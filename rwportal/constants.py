DEFAULT_ROLES = [
    ("ketua_rw", "Ketua RW (neighborhood board chair)"),
    ("wakil_ketua_rw", "Wakil Ketua RW (neighborhood board vice-chair)"),
    ("sekretaris_rw", "Sekretaris RW (neighborhood board secretary)"),
    ("bendahara_rw", "Bendahara RW (neighborhood board treasurer)"),
    ("ketua_rt", "Ketua RT (sub-zone chair)"),
    ("sekretaris_rt", "Sekretaris RT (sub-zone secretary)"),
    ("bendahara_rt", "Bendahara RT (sub-zone treasurer)"),
    ("warga", "Resident"),
]

ROLE_NAMES = {name for name, _ in DEFAULT_ROLES}

# Board administrators: may generate bills and manage tariffs.
RW_BOARD_ROLES = ("ketua_rw", "wakil_ketua_rw", "sekretaris_rw", "bendahara_rw")
RT_BOARD_ROLES = ("ketua_rt", "sekretaris_rt", "bendahara_rt")
RESIDENT_ROLE = "warga"

BILL_STATUS_UNPAID = "unpaid"
BILL_STATUS_PAID = "paid"
BILL_STATUSES = (BILL_STATUS_UNPAID, BILL_STATUS_PAID)

# Literal used at the HTTP edge for tariffs that apply to every zone.
ALL_ZONES_LITERAL = "ALL"
