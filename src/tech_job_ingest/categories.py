from tech_job_ingest.models import JobCategory

KEYWORDS_PER_SEARCH = 8

# Search phrases per category. A crawl for a category ORs together the first
# KEYWORDS_PER_SEARCH of them.
CATEGORY_KEYWORDS: dict[JobCategory, list[str]] = {
    JobCategory.ENGINEERING: [
        "Software Engineer",
        "Backend Developer",
        "Frontend Developer",
        "Full Stack Developer",
        "Mobile Developer",
        "iOS Developer",
        "Android Developer",
        "React Developer",
        "Node.js Developer",
        "Python Developer",
        "Java Developer",
        "C# Developer",
        "Go Developer",
        "Rust Developer",
        "TypeScript Developer",
        "JavaScript Developer",
        "Web Developer",
        "API Developer",
        "System Engineer",
        "Application Developer",
    ],
    JobCategory.SALES: [
        "Sales Representative",
        "Account Executive",
        "Business Development",
        "Sales Manager",
        "Sales Director",
        "Sales Consultant",
        "Sales Specialist",
        "Sales Engineer",
        "Technical Sales",
        "Inside Sales",
        "Outside Sales",
    ],
    JobCategory.MARKETING: [
        "Marketing Manager",
        "Marketing Coordinator",
        "Digital Marketing",
        "Content Marketing",
        "Social Media Marketing",
        "SEO Specialist",
        "Marketing Analyst",
        "Brand Manager",
        "Product Marketing",
        "Growth Marketing",
    ],
    JobCategory.DATA: [
        "Data Scientist",
        "Data Engineer",
        "Data Analyst",
        "Machine Learning Engineer",
        "AI Engineer",
        "Data Architect",
        "Business Intelligence Analyst",
        "Data Specialist",
        "Analytics Engineer",
        "ML Engineer",
        "AI Specialist",
    ],
    JobCategory.DEVOPS: [
        "DevOps Engineer",
        "Site Reliability Engineer",
        "Platform Engineer",
        "Infrastructure Engineer",
        "CI/CD Engineer",
        "DevOps Specialist",
        "Release Engineer",
        "Build Engineer",
        "Automation Engineer",
    ],
    JobCategory.PRODUCT: [
        "Product Manager",
        "Product Owner",
        "Technical Product Manager",
        "Product Analyst",
        "Associate Product Manager",
        "Senior Product Manager",
        "Product Director",
        "VP Product",
        "Head of Product",
    ],
    JobCategory.DESIGN: [
        "UI/UX Designer",
        "Product Designer",
        "UX Researcher",
        "Interaction Designer",
        "Visual Designer",
        "Graphic Designer",
        "UX Designer",
        "UI Designer",
        "Design System",
        "User Experience",
        "User Interface",
    ],
    JobCategory.CLOUD: [
        "Cloud Engineer",
        "AWS Engineer",
        "Azure Engineer",
        "GCP Engineer",
        "Cloud Architect",
        "Cloud Consultant",
        "Cloud Solutions Architect",
        "Kubernetes Engineer",
        "Docker Engineer",
        "Cloud Security Engineer",
    ],
    JobCategory.SUPPORT: [
        "Technical Support Engineer",
        "Customer Success Engineer",
        "Support Specialist",
        "Customer Support",
        "Technical Support",
        "Help Desk",
        "IT Support",
        "Customer Success Manager",
        "Client Success",
        "Support Engineer",
    ],
    JobCategory.MANAGEMENT: [
        "Engineering Manager",
        "Technical Lead",
        "VP Engineering",
        "CTO",
        "Director of Engineering",
        "Head of Engineering",
        "Team Lead",
        "Project Manager",
        "Program Manager",
        "Delivery Manager",
    ],
    JobCategory.RESEARCH: [
        "Research Scientist",
        "Applied Scientist",
        "Research Engineer",
        "Research Analyst",
        "R&D Engineer",
        "Research Associate",
        "Principal Scientist",
        "Senior Research Scientist",
    ],
    JobCategory.LEGAL: [
        "Legal Counsel",
        "Corporate Lawyer",
        "Legal Advisor",
        "Compliance Officer",
        "Legal Specialist",
        "Contract Manager",
        "Legal Manager",
        "General Counsel",
    ],
    JobCategory.FINANCE: [
        "Financial Analyst",
        "Finance Manager",
        "Financial Controller",
        "FP&A Analyst",
        "Financial Planning",
        "Budget Analyst",
        "Finance Director",
        "Chief Financial Officer",
        "Financial Operations",
    ],
    JobCategory.OPERATIONS: [
        "Operations Manager",
        "Operations Analyst",
        "Business Operations",
        "Operations Director",
        "Chief Operating Officer",
        "Operations Specialist",
        "Process Manager",
        "Operations Coordinator",
    ],
    JobCategory.PR: [
        "Public Relations",
        "PR Manager",
        "Communications Manager",
        "PR Specialist",
        "Media Relations",
        "Corporate Communications",
        "PR Coordinator",
        "Communications Director",
    ],
    JobCategory.HR: [
        "Human Resources",
        "HR Manager",
        "Talent Acquisition",
        "Recruiter",
        "HR Business Partner",
        "People Operations",
        "HR Director",
        "Chief Human Resources Officer",
        "Talent Manager",
    ],
    JobCategory.OTHER: [
        "Consultant",
        "Advisor",
        "Strategist",
        "Coordinator",
        "Administrator",
        "Specialist",
        "Associate",
        "Director",
        "VP",
        "Chief Officer",
    ],
}


def search_keywords(category: JobCategory | str) -> str:
    """LinkedIn keyword query for a category, e.g. "Software Engineer OR Backend Developer OR ..."."""
    phrases = CATEGORY_KEYWORDS[JobCategory(str(category).upper())]
    return " OR ".join(phrases[:KEYWORDS_PER_SEARCH])
