CV_SUMMARY_SYSTEM_PROMPT = (
    "You are an expert HR professional and technical recruiter. "
    "Analyze CVs objectively and provide structured insights for hiring decisions. "
    "Respond with a single JSON object and nothing else."
)

CV_SUMMARY_USER_PROMPT = """
Analyze this CV and provide a structured assessment:

CV Text:
{cv_text}

Extracted Data:
- Experience: {experience_years} years
- Technical Skills: {technical_skills}
- Education: {education}
{job_context}
Please provide your analysis in the following JSON format:
{{
  "summary": "2-3 sentence professional summary",
  "keyHighlights": ["highlight 1", "highlight 2", "highlight 3"],
  "concerns": ["concern 1", "concern 2"],
  "skillsAssessment": {{
    "technicalSkills": ["skill1", "skill2"],
    "experienceLevel": "junior|mid|senior|lead",
    "strengthAreas": ["area1", "area2"],
    "improvementAreas": ["area1", "area2"]
  }},
  "fitScore": 85,
  "recommendation": "strong_fit|good_fit|moderate_fit|poor_fit"
}}

Focus on:
1. Technical competency and experience level
2. Career progression and growth
3. Relevant skills for the role
4. Any red flags or concerns
5. Overall potential and fit
"""

JOB_CONTEXT_TEMPLATE = """
Job Context:
{job_description}

Please consider this job when evaluating the candidate's fit.
"""

JOB_MATCH_SYSTEM_PROMPT = (
    "You are an expert technical recruiter. Analyze how well a candidate matches a specific job posting. "
    "Provide detailed, objective analysis with specific scores and recommendations. "
    "Respond with a single JSON object and nothing else."
)

JOB_MATCH_USER_PROMPT = """
Analyze how well this candidate matches the specific job posting:

Candidate CV:
{cv_text}

Job Posting:
{job_text}

Please provide your analysis in the following JSON format:
{{
  "overallMatch": 85,
  "skillsMatch": 90,
  "experienceMatch": 80,
  "educationMatch": 85,
  "detailedAnalysis": {{
    "matchingSkills": ["skill1", "skill2"],
    "missingSkills": ["skill1", "skill2"],
    "experienceGap": "description of experience gap or fit",
    "educationFit": "how education aligns with requirements"
  }},
  "recommendation": "detailed recommendation with specific reasons"
}}

Provide scores out of 100 and be specific about matches and gaps.
"""
