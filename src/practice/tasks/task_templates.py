"""
Default Task Templates

Seed data for service templates (recurring work generated ahead of a
service's due date) and standalone templates (one-off practice tasks).
"""

from typing import List

from .task_models import (
    ServiceTemplate,
    StandaloneCategory,
    StandaloneTaskTemplate,
    TaskPriority,
    TaskTemplateItem,
)
from ..services.service_models import ServiceFrequency

H = TaskPriority.HIGH
M = TaskPriority.MEDIUM
L = TaskPriority.LOW
U = TaskPriority.URGENT

# (kind, aliases, frequency, applies_to, compliance_impact, steps)
# step = (title, description, days_before_due, priority, tags)
_SERVICE_PLANS = [
    ("Annual Accounts", ["Accounts Preparation", "Statutory Accounts"], ServiceFrequency.ANNUAL,
     ["COMPANY", "LLP"], "ANNUAL_ACCOUNTS", [
         ("Request client records", "Ask the client for year-end records and bank statements.", 60, H, ["preparation", "client-contact"]),
         ("Review and prepare accounts", "Prepare draft statutory accounts.", 30, H, ["preparation", "accounts"]),
         ("Client review and approval", "Send draft accounts for client sign-off.", 14, M, ["client-review", "approval"]),
         ("File annual accounts", "File accounts with Companies House.", 3, U, ["filing", "companies-house"]),
     ]),
    ("Corporation Tax Return", ["Corporation Tax"], ServiceFrequency.ANNUAL,
     ["COMPANY"], "CT600", [
         ("Prepare corporation tax computation", "Compute taxable profits for the period.", 90, H, ["preparation", "computation"]),
         ("Review tax planning opportunities", "Check reliefs and allowances before filing.", 60, M, ["planning", "optimization"]),
         ("Prepare CT600 return", "Complete the CT600 and supporting schedules.", 30, H, ["preparation", "ct600"]),
         ("Submit corporation tax return", "Submit the CT600 to HMRC.", 7, U, ["filing", "hmrc"]),
     ]),
    ("Self Assessment Tax Return", ["Self Assessment"], ServiceFrequency.ANNUAL,
     ["INDIVIDUAL", "SOLE_TRADER"], "SA100", [
         ("Request client information", "Request income and expense details for the tax year.", 60, H, ["preparation", "client-contact"]),
         ("Prepare self assessment return", "Prepare the SA100 return.", 21, H, ["preparation", "sa100"]),
         ("Client review and approval", "Client checks and approves the return.", 14, M, ["client-review"]),
         ("Submit self assessment return", "Submit the return to HMRC.", 3, U, ["filing", "hmrc"]),
     ]),
    ("VAT Returns (Quarterly)", ["VAT Returns", "VAT Return"], ServiceFrequency.QUARTERLY,
     ["COMPANY", "INDIVIDUAL"], "VAT_RETURN", [
         ("Collect VAT records", "Collect sales and purchase records for the quarter.", 21, H, ["preparation", "records"]),
         ("Prepare VAT return", "Reconcile and calculate the VAT due.", 14, H, ["preparation", "calculation"]),
         ("Client review", "Client approves the VAT figures.", 7, M, ["client-review"]),
         ("Submit VAT return", "Submit the return through MTD software.", 2, U, ["filing", "hmrc"]),
     ]),
    ("VAT Returns (Monthly)", ["VAT Returns", "VAT Return"], ServiceFrequency.MONTHLY,
     ["COMPANY", "INDIVIDUAL"], "VAT_RETURN", [
         ("Collect monthly VAT records", "Collect the month's sales and purchase records.", 14, H, ["preparation", "records"]),
         ("Prepare monthly VAT return", "Reconcile and calculate the VAT due.", 7, H, ["preparation", "calculation"]),
         ("Submit monthly VAT return", "Submit the return through MTD software.", 2, U, ["filing", "hmrc"]),
     ]),
    ("Payroll Services", ["Payroll"], ServiceFrequency.MONTHLY,
     ["COMPANY"], "RTI_SUBMISSION", [
         ("Collect payroll data", "Collect hours, starters, leavers and changes.", 10, H, ["preparation", "data-collection"]),
         ("Process payroll", "Run payroll and produce payslips.", 5, H, ["processing", "calculation"]),
         ("Submit RTI to HMRC", "Send the Full Payment Submission.", 2, U, ["filing", "hmrc", "rti"]),
     ]),
    ("Bookkeeping", [], ServiceFrequency.MONTHLY,
     ["COMPANY", "INDIVIDUAL"], None, [
         ("Collect monthly records", "Collect receipts, invoices and statements.", 15, M, ["preparation", "records"]),
         ("Update bookkeeping records", "Post transactions and reconcile bank accounts.", 7, M, ["processing", "reconciliation"]),
         ("Prepare monthly reports", "Produce monthly summary reports.", 3, L, ["reporting"]),
     ]),
    ("Management Accounts", [], ServiceFrequency.MONTHLY,
     ["COMPANY"], None, [
         ("Prepare management accounts", "Prepare the month's management accounts.", 10, M, ["preparation", "reporting"]),
         ("Analysis and commentary", "Write variance analysis and commentary.", 5, M, ["analysis", "commentary"]),
         ("Client presentation", "Walk the client through the results.", 2, L, ["presentation", "client-meeting"]),
     ]),
    ("Company Secretarial", ["Confirmation Statement"], ServiceFrequency.ANNUAL,
     ["COMPANY"], "CONFIRMATION_STATEMENT", [
         ("Prepare confirmation statement", "Draft the annual confirmation statement.", 30, H, ["companies-house", "preparation"]),
         ("Client approval of confirmation", "Send the statement to the client for approval.", 14, M, ["client-review"]),
         ("File confirmation statement", "Submit CS01 to Companies House.", 5, U, ["filing"]),
     ]),
]

_STANDALONE = {
    StandaloneCategory.CLIENT_COMMUNICATION: [
        ("Respond to client email", "Reply to an outstanding client email", M, ["email", "client"]),
        ("Make follow-up call", "Call the client about an open query", H, ["call", "follow-up"]),
        ("Chase missing records", "Chase records the client has not yet supplied", H, ["records", "chase"]),
        ("Send deadline reminder", "Remind the client of an upcoming deadline", H, ["reminder", "deadline"]),
        ("Arrange client meeting", "Book a meeting or call with the client", M, ["meeting"]),
        ("Send engagement letter", "Issue the engagement letter for signature", H, ["engagement", "onboarding"]),
        ("Follow up on client query", "Close out an open client query", M, ["query", "follow-up"]),
        ("Update client contact info", "Refresh contact details on the client record", L, ["admin", "contact"]),
    ],
    StandaloneCategory.BILLING: [
        ("Issue invoice", "Raise an invoice for completed work", H, ["billing", "invoice"]),
        ("Send invoice reminder", "Remind the client of an unpaid invoice", M, ["billing", "reminder"]),
        ("Chase overdue payment", "Chase a payment past its due date", U, ["billing", "credit-control"]),
        ("Update debtor tracking", "Update the debtor tracking sheet", M, ["billing", "tracking"]),
        ("Record payment received", "Record and reconcile a client payment", H, ["billing", "payment"]),
        ("Prepare debtor ageing report", "Prepare the monthly debtor ageing report", M, ["billing", "reporting"]),
    ],
    StandaloneCategory.PRACTICE_ADMIN: [
        ("File signed documents", "File signed letters, accounts and returns", M, ["filing", "documents"]),
        ("Maintain filing systems", "Tidy digital and paper filing", L, ["filing", "organization"]),
        ("Update job status", "Update the job tracker", M, ["workflow", "tracking"]),
        ("Allocate tasks to team", "Assign work to team members", H, ["workflow", "team-management"]),
        ("Record timesheets", "Record staff time and review chargeable hours", M, ["timesheets", "billing"]),
        ("Perform data backup", "Back up client and internal files", H, ["backup", "it"]),
    ],
    StandaloneCategory.EMAIL: [
        ("Check shared inbox", "Work through the shared enquiries inbox", M, ["email", "inbox"]),
        ("Forward emails to staff", "Route emails to the responsible person", M, ["email", "delegation"]),
        ("Send bulk reminders", "Send VAT, PAYE or CT600 deadline reminders", H, ["email", "reminder", "bulk"]),
        ("Confirm document receipt", "Confirm receipt of client documents", M, ["email", "confirmation"]),
    ],
    StandaloneCategory.CLIENT_JOB: [
        ("Create new client job", "Open a new job for the client", H, ["workflow", "job-creation"]),
        ("Update job progress", "Record progress such as records received or draft prepared", M, ["workflow", "tracking"]),
        ("Review jobs nearing deadlines", "Review jobs close to their deadline and set priorities", H, ["workflow", "deadline", "review"]),
        ("Close completed job", "Close the job and record completion notes", M, ["workflow", "completion"]),
        ("Schedule periodic review", "Book the next periodic client review", L, ["workflow", "review", "planning"]),
    ],
    StandaloneCategory.INTERNAL: [
        ("Review WIP report", "Review work in progress and billable time", M, ["reporting", "wip"]),
        ("Conduct team check-in", "Run the team workflow meeting", M, ["meeting", "team-management"]),
        ("Review client satisfaction", "Gather and review client feedback", L, ["feedback", "quality"]),
        ("Maintain CPD logs", "Keep staff CPD logs and training plans current", L, ["training", "cpd"]),
    ],
    StandaloneCategory.MARKETING: [
        ("Send client newsletter", "Send the client newsletter or tax update", L, ["marketing", "newsletter"]),
        ("Post social media update", "Post a firm update or reminder", L, ["marketing", "social-media"]),
        ("Follow up on enquiry", "Follow up a new enquiry or referral", H, ["marketing", "lead", "follow-up"]),
        ("Update firm website", "Update the website or online profiles", L, ["marketing", "website"]),
    ],
}


def default_service_templates() -> List[ServiceTemplate]:
    """Fresh copies of the built-in service templates."""
    templates = []
    for kind, aliases, frequency, applies_to, compliance, steps in _SERVICE_PLANS:
        templates.append(ServiceTemplate(
            service_kind=kind,
            aliases=list(aliases),
            frequency=frequency,
            applies_to=list(applies_to),
            compliance_impact=compliance,
            pricing_model="per_period",
            task_templates=[
                TaskTemplateItem(
                    title=title,
                    description=description,
                    days_before_due=days,
                    priority=priority,
                    tags=list(tags),
                )
                for title, description, days, priority, tags in steps
            ],
        ))
    return templates


def default_standalone_templates() -> List[StandaloneTaskTemplate]:
    """Fresh copies of the built-in standalone templates."""
    return [
        StandaloneTaskTemplate(
            title=title,
            description=description,
            category=category,
            priority=priority,
            tags=list(tags),
        )
        for category, rows in _STANDALONE.items()
        for title, description, priority, tags in rows
    ]
